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
Models describing launchable components and their rendered container specs.
"""
import hashlib
import json
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RuntimeState(str, Enum):
    """State of a named container as reported by the container runtime."""

    ABSENT = "absent"
    RUNNING = "running"
    STOPPED = "stopped"


class ReadinessResult(str, Enum):
    """
    Outcome of a readiness wait. The waiters only ever return READY; a
    timeout is reported by raising StateTimeoutError or SocketTimeoutError,
    whose `result` is TIMED_OUT.
    """
    READY = "ready"
    TIMED_OUT = "timed-out"


class ComponentState(str, Enum):
    """Lifecycle of one component within a single orchestration run."""

    NOT_STARTED = "not-started"
    PROVISIONING = "provisioning"
    STARTING = "starting"
    AWAITING_READINESS = "awaiting-readiness"
    READY = "ready"
    SKIPPED = "skipped"
    FAILED = "failed"


class HostNetwork(BaseModel):
    """
    Default outbound interface of the host and its IPv4 address.
    """
    model_config = ConfigDict(frozen=True)

    interface: str
    ip: str


class ReadinessTarget(BaseModel):
    """
    TCP endpoint probed once the container is running.
    A missing host means the container's own runtime address.
    """
    model_config = ConfigDict(frozen=True)

    host: Optional[str] = None
    port: int = Field(ge=1, le=65535)


class ContainerTemplate(BaseModel):
    """
    Unrendered container description as written in the catalog.
    String values may contain jinja2 expressions.
    """
    name: str
    image: str
    environment: Dict[str, str] = {}
    ports: Dict[str, Optional[int]] = {}  # {"<port>/<proto>": host_port}
    privileged: bool = False
    cap_add: List[str] = []
    devices: List[str] = []
    cpu_rt_runtime: Optional[int] = None
    network_mode: Optional[str] = None
    readiness: Optional[ReadinessTarget] = None


class ComponentSpec(BaseModel):
    """
    Fully rendered description of one container, immutable for a run.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    environment: Dict[str, str] = {}
    ports: Dict[str, Optional[int]] = {}
    privileged: bool = False
    cap_add: List[str] = []
    devices: List[str] = []
    cpu_rt_runtime: Optional[int] = None
    network_mode: Optional[str] = None
    readiness: Optional[ReadinessTarget] = None
    labels: Dict[str, str] = {}

    def spec_hash(self) -> str:
        """Stable digest of everything that shapes the container, labels excluded."""
        payload = json.dumps(self.model_dump(exclude={"labels"}, mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()


class ProvisioningStep(BaseModel):
    """
    One-shot batch sent to a dependency, e.g. a schema load or a record insert.
    """
    name: str
    target: str
    image: Optional[str] = None
    client: List[str] = ["cqlsh", "{{ address }}", "-e"]
    batch: str


class Component(BaseModel):
    """
    One launchable network function of the lab.
    """
    tag: str
    description: str = ""
    depends_on: List[str] = []
    implemented: bool = True
    container: Optional[ContainerTemplate] = None
    pre_start: List[ProvisioningStep] = []
    post_start: List[ProvisioningStep] = []

    @model_validator(mode="after")
    def _container_required(self) -> "Component":
        if self.implemented and self.container is None:
            raise ValueError(f"component {self.tag} is implemented but declares no container")
        return self


@dataclass
class RuntimeInfo:
    """What the launcher knows about a started or reused container."""

    name: str
    container_id: Optional[str]
    ip: str
    reused: bool = False
