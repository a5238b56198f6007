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
Capability interface of the container runtime the launcher drives.
"""
from abc import ABC, abstractmethod
from typing import Dict, List

from ..MODELS.component import ComponentSpec, RuntimeState


class ContainerRuntime(ABC):
    """
    The narrow set of primitives the launcher needs from a container runtime.
    Any runtime exposing equivalent operations can implement it.
    """

    @abstractmethod
    def inspect_state(self, name: str) -> RuntimeState:
        """Live state of the named container; ABSENT if there is none."""

    @abstractmethod
    def inspect_ip(self, name: str) -> str:
        """Runtime IPv4 address of the named container, or '' if it has none."""

    @abstractmethod
    def inspect_labels(self, name: str) -> Dict[str, str]:
        """Labels of the named container, or {} if it does not exist."""

    @abstractmethod
    def remove(self, name: str, force: bool = True) -> None:
        """Removes the named container. A missing container is not an error."""

    @abstractmethod
    def run(self, spec: ComponentSpec) -> str:
        """
        Creates and starts a container from spec.

        :return: The new container id.
        :raises ContainerStartError: If the container cannot be created or started.
        """

    @abstractmethod
    def exec_one_shot(self, image: str, command: List[str]) -> str:
        """
        Runs command in a throw-away container of image and returns its output.

        :raises ProvisioningError: If the command exits non-zero or cannot run.
        """
