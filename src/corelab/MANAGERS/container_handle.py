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
Idempotent lifecycle of a single named container.
"""
from typing import Callable, Optional

from ..MODELS.component import ComponentSpec, ComponentState, RuntimeInfo, RuntimeState
from ..RUNTIME.base import ContainerRuntime
from .readiness import ReadinessWaiter

COMPONENT_LABEL = "corelab.component"
SPEC_HASH_LABEL = "corelab.spec-hash"


class ContainerHandle:
    """
    Starts a container if it is absent, replaces it if it is stopped and
    reuses it as-is if it is already running.
    """

    def __init__(self, runtime: ContainerRuntime, waiter: ReadinessWaiter):
        self.runtime = runtime
        self.waiter = waiter

    def state(self, name: str) -> RuntimeState:
        return self.runtime.inspect_state(name)

    def run(self,
            spec: ComponentSpec,
            on_transition: Optional[Callable[[ComponentState], None]] = None) -> RuntimeInfo:
        """
        Brings the container described by spec to readiness.

        A running container is returned immediately, without a restart and
        without re-checking readiness. Its configuration is not compared
        beyond a drift warning.

        :param spec: Rendered container description.
        :param on_transition: Called with AWAITING_READINESS once the container is created.
        :return: Name, id and runtime address of the container.
        :raises ContainerStartError: If the runtime cannot create the container.
        :raises ReadinessError: If the container does not become ready in time.
        """
        state = self.runtime.inspect_state(spec.name)
        if state is RuntimeState.RUNNING:
            print(f"[{spec.name}] already running, reusing it.")
            self._warn_on_drift(spec)
            return RuntimeInfo(name=spec.name, container_id=None,
                               ip=self.runtime.inspect_ip(spec.name), reused=True)

        if state is RuntimeState.STOPPED:
            print(f"[{spec.name}] found stopped, replacing it.")
        self.runtime.remove(spec.name, force=True)

        print(f"[{spec.name}] starting from image {spec.image}...")
        container_id = self.runtime.run(spec)
        if on_transition:
            on_transition(ComponentState.AWAITING_READINESS)

        self.waiter.wait_for_state(spec.name, RuntimeState.RUNNING)
        ip = self.runtime.inspect_ip(spec.name)

        if spec.readiness:
            # Host-networked containers have no address of their own.
            host = spec.readiness.host or ip or "127.0.0.1"
            self.waiter.wait_for_socket(host, spec.readiness.port, label=spec.name)

        return RuntimeInfo(name=spec.name, container_id=container_id, ip=ip)

    def remove(self, name: str):
        """
        Force-removes the named container if it exists.
        """
        if self.runtime.inspect_state(name) is RuntimeState.ABSENT:
            print(f"[{name}] not present.")
            return
        print(f"[{name}] removing...")
        self.runtime.remove(name, force=True)

    def _warn_on_drift(self, spec: ComponentSpec):
        recorded = self.runtime.inspect_labels(spec.name).get(SPEC_HASH_LABEL)
        if recorded and recorded != spec.spec_hash():
            print(f"[{spec.name}] Warning: running container was started with a different "
                  f"configuration; run 'corelab down' to recreate it.")
