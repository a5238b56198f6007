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
Container runtime backed by the Docker Engine API (docker SDK for Python).
"""
from typing import Dict, List, Optional

import docker
from docker.errors import APIError, ContainerError, DockerException, ImageNotFound, NotFound

from ..exceptions import ContainerStartError, ProvisioningError
from ..MODELS.component import ComponentSpec, RuntimeState
from .base import ContainerRuntime


class DockerRuntime(ContainerRuntime):
    """
    Drives the local Docker daemon.
    """

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """
        :param client: An existing client; defaults to docker.from_env().
        """
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise ContainerStartError(f"Docker is not available: {e}") from e
        return self._client

    def _get(self, name: str):
        try:
            container = self.client.containers.get(name)
        except NotFound:
            return None
        return container

    def inspect_state(self, name: str) -> RuntimeState:
        container = self._get(name)
        if container is None:
            return RuntimeState.ABSENT
        if container.status.lower() == RuntimeState.RUNNING.value:
            return RuntimeState.RUNNING
        # created, exited, paused, restarting, dead
        return RuntimeState.STOPPED

    def inspect_ip(self, name: str) -> str:
        container = self._get(name)
        if container is None:
            return ""
        settings = container.attrs.get("NetworkSettings", {}) or {}
        if settings.get("IPAddress"):
            return settings["IPAddress"]
        for net_info in (settings.get("Networks") or {}).values():
            if net_info.get("IPAddress"):
                return net_info["IPAddress"]
        return ""

    def inspect_labels(self, name: str) -> Dict[str, str]:
        container = self._get(name)
        if container is None:
            return {}
        return dict(container.labels or {})

    def remove(self, name: str, force: bool = True) -> None:
        container = self._get(name)
        if container is None:
            return
        try:
            container.remove(force=force)
        except NotFound:
            return

    def run(self, spec: ComponentSpec) -> str:
        kwargs = {
            "name": spec.name,
            "detach": True,
            "environment": dict(spec.environment),
            "labels": dict(spec.labels),
            "privileged": spec.privileged,
            # A crashed network function stays down until the next run.
            "restart_policy": {"Name": "no"},
        }
        if spec.ports:
            kwargs["ports"] = dict(spec.ports)
        if spec.cap_add:
            kwargs["cap_add"] = list(spec.cap_add)
        if spec.devices:
            kwargs["devices"] = list(spec.devices)
        if spec.cpu_rt_runtime is not None:
            kwargs["cpu_rt_runtime"] = spec.cpu_rt_runtime
        if spec.network_mode:
            kwargs["network_mode"] = spec.network_mode

        try:
            container = self.client.containers.run(spec.image, **kwargs)
        except ImageNotFound as e:
            raise ContainerStartError(f"Image {spec.image} not found for {spec.name}: {e}") from e
        except APIError as e:
            raise ContainerStartError(f"Docker refused to start {spec.name}: {e.explanation or e}") from e
        return container.id

    def exec_one_shot(self, image: str, command: List[str]) -> str:
        try:
            output = self.client.containers.run(
                image,
                command=command,
                remove=True,
                stdout=True,
                stderr=True,
            )
        except ContainerError as e:
            stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else e.stderr
            raise ProvisioningError(f"'{command[0]}' exited with {e.exit_status}: {stderr}") from e
        except (ImageNotFound, APIError) as e:
            raise ProvisioningError(f"Cannot run one-shot container from {image}: {e}") from e
        if isinstance(output, bytes):
            return output.decode(errors="replace")
        return str(output)
