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
Names visible to catalog templates while a component is being launched.
"""
from typing import Any, Dict, Optional

from ..exceptions import ConfigurationError, DependencyError
from ..MODELS.catalog import Catalog
from ..MODELS.component import HostNetwork
from ..RUNTIME.base import ContainerRuntime
from ..UTILS.settings import Settings


class ResolutionContext:
    """
    Resolves dynamic configuration: host network facts, settings and the
    live runtime addresses of already started components.

    Addresses are queried from the runtime on every call and never cached.
    """

    def __init__(self,
                 catalog: Catalog,
                 runtime: ContainerRuntime,
                 host: Optional[HostNetwork],
                 settings: Settings):
        self.catalog = catalog
        self.runtime = runtime
        self.host = host
        self.settings = settings

    def ip(self, tag: str) -> str:
        """
        Runtime address of the container behind tag.

        :raises ConfigurationError: If tag is not a component with a container.
        :raises DependencyError: If the container is not running or has no address.
        """
        tag = tag.upper()
        if tag not in self.catalog.components or not self.catalog.container_name(tag):
            raise ConfigurationError(f"Cannot resolve the address of '{tag}': no such container component")
        name = self.catalog.container_name(tag)
        address = self.runtime.inspect_ip(name)
        if not address:
            raise DependencyError(f"{tag} ({name}) has no runtime address; is it running?")
        return address

    def variables(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        variables: Dict[str, Any] = {
            "host": self.host,
            "platform": self.settings.platform,
            "registry": self.settings.registry,
            "ip": self.ip,
        }
        if extra:
            variables.update(extra)
        return variables
