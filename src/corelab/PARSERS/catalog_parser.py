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
Parser for component catalog YAML files.
"""
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from ..MODELS.catalog import Catalog
from ..MODELS.component import Component, ContainerTemplate, ProvisioningStep
from ..RUNNERS.dependency_resolver import DependencyResolver

DEFAULT_CATALOG = os.path.join(os.path.dirname(os.path.dirname(__file__)), "components.yaml")


class CatalogParser:
    """
    Parser for components.yaml catalogs.
    """

    def parse(self, catalog_path: Optional[str] = None) -> Catalog:
        """
        Parses a catalog file from a path.

        :param catalog_path: Path to the catalog; the bundled catalog when omitted.
        :return: Parsed and validated catalog.
        """
        catalog_path = catalog_path or DEFAULT_CATALOG
        if not os.path.exists(catalog_path):
            raise ConfigurationError(f"Catalog {catalog_path} not found.")
        with open(catalog_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> Catalog:
        """
        Parses a catalog from a YAML string.

        :param content: YAML content of the catalog.
        :return: Parsed and validated catalog.
        :raises ConfigurationError: If the YAML or the catalog is invalid.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid catalog YAML: {e}") from e
        if not data:
            data = {}

        components = {}
        for tag, spec in (data.get('components') or {}).items():
            tag = str(tag).upper()
            components[tag] = self._parse_component(tag, spec or {})

        aliases = {
            str(name).upper(): [str(m).upper() for m in self._to_list(members)]
            for name, members in (data.get('aliases') or {}).items()
        }

        try:
            catalog = Catalog(components=components, aliases=aliases)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid catalog: {e}") from e
        self._validate(catalog)
        return catalog

    def _parse_component(self, tag: str, spec: Dict[str, Any]) -> Component:
        """
        Parses a single component entry.

        :param tag: The component tag.
        :param spec: The component dictionary.
        :return: A Component instance.
        """
        container = spec.get('container')
        if container:
            container = dict(container)
            container['ports'] = self._parse_ports(container.get('ports'))
            container['environment'] = {
                str(k): "" if v is None else str(v) for k, v in (container.get('environment') or {}).items()
            }
        try:
            return Component(
                tag=tag,
                description=spec.get('description', ''),
                depends_on=[str(d).upper() for d in self._to_list(spec.get('depends_on'))],
                implemented=spec.get('implemented', True),
                container=ContainerTemplate(**container) if container else None,
                pre_start=[ProvisioningStep(**s) for s in spec.get('pre_start') or []],
                post_start=[ProvisioningStep(**s) for s in spec.get('post_start') or []],
            )
        except (ValidationError, TypeError) as e:
            raise ConfigurationError(f"Invalid component {tag}: {e}") from e

    def _parse_ports(self, ports: Any) -> Dict[str, Optional[int]]:
        """
        Accepts {"36412/sctp": 36412} or ["36412:36412/sctp", "9042"].
        """
        if not ports:
            return {}
        if isinstance(ports, dict):
            return {self._with_proto(str(k)): v for k, v in ports.items()}
        parsed = {}
        for p in self._to_list(ports):
            parts = str(p).split(':')
            if len(parts) == 2:
                parsed[self._with_proto(parts[1])] = int(parts[0])
            else:
                parsed[self._with_proto(parts[0])] = None
        return parsed

    @staticmethod
    def _with_proto(port: str) -> str:
        return port if '/' in port else f"{port}/tcp"

    def _validate(self, catalog: Catalog):
        known = set(catalog.components)
        for tag, component in catalog.components.items():
            for dep in component.depends_on:
                if dep not in known:
                    raise ConfigurationError(f"{tag} depends on unknown component {dep}")
            for step in component.pre_start + component.post_start:
                target = step.target.upper()
                if target not in known or not catalog.container_name(target):
                    raise ConfigurationError(f"{tag} step '{step.name}' targets unknown component {step.target}")

        for alias, members in catalog.aliases.items():
            if alias in known:
                raise ConfigurationError(f"Alias {alias} shadows a component of the same name")
            for member in members:
                if member not in known and member not in catalog.aliases:
                    raise ConfigurationError(f"Alias {alias} refers to unknown tag {member}")

        names: Dict[str, str] = {}
        for tag in catalog.tags:
            name = catalog.container_name(tag)
            if not name:
                continue
            if name in names:
                raise ConfigurationError(f"{tag} and {names[name]} share the container name {name}")
            names[name] = tag

        # Raises on cycles.
        DependencyResolver(catalog).resolve_order(catalog.tags, include_dependencies=False)

    def _to_list(self, val: Any) -> List[str]:
        """
        Helper to ensure a value is a list.

        :param val: The value to convert.
        :return: A list.
        """
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        return list(val)
