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
Models for the complete component catalog.
"""
from typing import Dict, List

from pydantic import BaseModel

from .component import Component


class Catalog(BaseModel):
    """
    Every component the launcher knows about, in declaration order,
    plus the composite aliases that expand to them.
    """
    components: Dict[str, Component]
    aliases: Dict[str, List[str]] = {}

    @property
    def tags(self) -> List[str]:
        return list(self.components.keys())

    def container_name(self, tag: str) -> str:
        component = self.components[tag]
        if component.container is None:
            return ""
        return component.container.name
