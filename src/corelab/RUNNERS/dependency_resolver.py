# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Resolves requested tags into an ordered execution plan.
"""
from typing import Dict, Iterable, List, Optional, Set

from ..exceptions import ConfigurationError
from ..MODELS.catalog import Catalog


class DependencyResolver:
    """
    Expands aliases and orders components so that dependencies come first.
    """

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    def expand_aliases(self, tags: Iterable[str]) -> List[str]:
        """
        Expands composite tags into their members, keeping first-seen order.
        Tags are case-insensitive. Expanding an expanded list is a no-op.

        :param tags: Requested tags, possibly including aliases.
        :return: Upper-cased tags without aliases or duplicates.
        """
        expanded: List[str] = []
        seen: Set[str] = set()

        def visit(tag: str, trail: List[str]):
            tag = tag.strip().upper()
            if tag in trail:
                raise ConfigurationError(f"Alias cycle: {' -> '.join(trail + [tag])}")
            if tag in self.catalog.aliases:
                for member in self.catalog.aliases[tag]:
                    visit(member, trail + [tag])
            elif tag and tag not in seen:
                seen.add(tag)
                expanded.append(tag)

        for tag in tags:
            visit(tag, [])
        return expanded

    def validate(self, tags: List[str]):
        """
        :raises ConfigurationError: If tags is empty or holds unknown tags.
        """
        if not tags:
            raise ConfigurationError("At least one component tag is required.")
        unknown = [t for t in tags if t not in self.catalog.components]
        if unknown:
            known = ", ".join(self.catalog.tags + list(self.catalog.aliases))
            raise ConfigurationError(f"Unknown tag(s): {', '.join(unknown)}. Known tags: {known}")

    def resolve(self, tags: Iterable[str], include_dependencies: bool = True) -> List[str]:
        """
        Expands, validates and orders the requested tags.

        :param tags: Requested tags, possibly including aliases.
        :param include_dependencies: Add transitive dependencies to the plan.
        :return: Component tags in start order.
        """
        expanded = self.expand_aliases(tags)
        self.validate(expanded)
        return self.resolve_order(expanded, include_dependencies)

    def resolve_order(self, tags: List[str], include_dependencies: bool = True) -> List[str]:
        """
        Orders tags so that every component follows its dependencies.

        Uses a depth-first topological sort over catalog declaration order.

        :raises ConfigurationError: If a circular dependency is detected.
        """
        wanted = set(tags)
        if include_dependencies:
            wanted = self.closure(tags)
        dependencies: Dict[str, List[str]] = {
            name: component.depends_on for name, component in self.catalog.components.items()
        }

        ordered: List[str] = []
        visited: Set[str] = set()
        processing: Set[str] = set()

        def visit(name):
            """
            Recursive function for topological sort.
            """
            if name in processing:
                raise ConfigurationError(f"Circular dependency detected involving {name}")
            if name not in visited:
                processing.add(name)
                for dep in dependencies.get(name, []):
                    if dep in wanted:
                        visit(dep)
                processing.remove(name)
                visited.add(name)
                ordered.append(name)

        for name in self.catalog.components:
            if name in wanted:
                visit(name)

        return ordered

    def closure(self, tags: Iterable[str], seen: Optional[Set[str]] = None) -> Set[str]:
        """
        The tags plus everything they transitively depend on.
        """
        seen = set() if seen is None else seen
        for tag in tags:
            if tag in seen or tag not in self.catalog.components:
                continue
            seen.add(tag)
            self.closure(self.catalog.components[tag].depends_on, seen)
        return seen
