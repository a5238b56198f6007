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
Shared fixtures: an in-memory container runtime and a non-sleeping waiter.
"""
from typing import Dict, List, Optional, Set, Tuple

import pytest

from corelab.exceptions import ContainerStartError, ProvisioningError
from corelab.MANAGERS.readiness import ReadinessWaiter
from corelab.MODELS.component import ComponentSpec, HostNetwork, RuntimeState
from corelab.PARSERS.catalog_parser import CatalogParser
from corelab.RUNTIME.base import ContainerRuntime
from corelab.UTILS.settings import Settings


class FakeRuntime(ContainerRuntime):
    """
    Container runtime kept in memory. Started containers become running
    after `boot_ticks[name]` state queries (0 by default) and listen on
    their readiness port unless their name is in `never_listen`.
    """

    def __init__(self):
        self.containers: Dict[str, Dict] = {}
        self.calls: List[Tuple[str, str]] = []
        self.exec_calls: List[Tuple[str, List[str]]] = []
        self.listening: Set[Tuple[str, int]] = set()
        self.boot_ticks: Dict[str, int] = {}
        self.never_listen: Set[str] = set()
        self.fail_run: Set[str] = set()
        self.fail_exec = False
        self._next_ip = 2

    def add(self, name: str, state: RuntimeState = RuntimeState.RUNNING,
            ip: Optional[str] = None, labels: Optional[Dict[str, str]] = None):
        self.containers[name] = {
            "state": state,
            "ip": ip if ip is not None else self._allocate_ip(),
            "labels": labels or {},
            "spec": None,
        }

    def _allocate_ip(self) -> str:
        ip = f"172.17.0.{self._next_ip}"
        self._next_ip += 1
        return ip

    def mutations(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("remove", "run", "exec")]

    def inspect_state(self, name: str) -> RuntimeState:
        self.calls.append(("inspect_state", name))
        container = self.containers.get(name)
        if container is None:
            return RuntimeState.ABSENT
        pending = self.boot_ticks.get(name, 0)
        if container["state"] is RuntimeState.STOPPED and container.get("booting"):
            if pending <= 0:
                container["state"] = RuntimeState.RUNNING
            else:
                self.boot_ticks[name] = pending - 1
        return container["state"]

    def inspect_ip(self, name: str) -> str:
        self.calls.append(("inspect_ip", name))
        container = self.containers.get(name)
        if container is None or container["state"] is not RuntimeState.RUNNING:
            return ""
        return container["ip"]

    def inspect_labels(self, name: str) -> Dict[str, str]:
        container = self.containers.get(name)
        return dict(container["labels"]) if container else {}

    def remove(self, name: str, force: bool = True) -> None:
        self.calls.append(("remove", name))
        self.containers.pop(name, None)

    def run(self, spec: ComponentSpec) -> str:
        self.calls.append(("run", spec.name))
        if spec.name in self.fail_run:
            raise ContainerStartError(f"port already allocated for {spec.name}")
        ip = "" if spec.network_mode == "host" else self._allocate_ip()
        self.containers[spec.name] = {
            "state": RuntimeState.STOPPED,
            "booting": True,
            "ip": ip,
            "labels": dict(spec.labels),
            "spec": spec,
        }
        if spec.readiness and spec.name not in self.never_listen:
            self.listening.add((spec.readiness.host or ip or "127.0.0.1", spec.readiness.port))
        return f"id-{spec.name}"

    def exec_one_shot(self, image: str, command: List[str]) -> str:
        self.calls.append(("exec", image))
        self.exec_calls.append((image, command))
        if self.fail_exec:
            raise ProvisioningError("SyntaxException: line 1:0 no viable alternative")
        return ""

    def is_listening(self, host: str, port: int) -> bool:
        return (host, port) in self.listening


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float):
        self.calls.append(seconds)


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def waiter(runtime, sleeps):
    return ReadinessWaiter(runtime, state_timeout=30, socket_timeout=120,
                           interval=1, sleep=sleeps, probe=runtime.is_listening)


@pytest.fixture
def catalog():
    return CatalogParser().parse()


@pytest.fixture
def host():
    return HostNetwork(interface="eth0", ip="192.168.1.20")


@pytest.fixture
def settings():
    return Settings(platform="ubuntu18.04", registry="docker.io/oaisoftwarealliance")
