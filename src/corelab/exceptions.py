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
Error taxonomy. Every failure class is terminal for an orchestration run.
"""
from typing import Optional

from .MODELS.component import ReadinessResult


class CorelabError(Exception):
    """Base class for all launcher errors."""


class ConfigurationError(CorelabError):
    """Bad or missing tag, empty request, or an invalid catalog."""


class NetworkProbeError(CorelabError):
    """The host network configuration could not be discovered."""


class ContainerStartError(CorelabError):
    """A container could not be created or started."""


class ReadinessError(CorelabError):
    """A container did not become ready in time."""

    result = ReadinessResult.TIMED_OUT


class StateTimeoutError(ReadinessError):
    def __init__(self, name: str, state: str, timeout: float, last_state: Optional[str] = None):
        self.name = name
        self.state = state
        self.timeout = timeout
        self.last_state = last_state
        message = f"Container {name} did not reach state '{state}' within {timeout:g}s"
        if last_state:
            message += f" (last state: {last_state})"
        super().__init__(message)


class SocketTimeoutError(ReadinessError):
    def __init__(self, host: str, port: int, timeout: float):
        self.host = host
        self.port = port
        self.timeout = timeout
        super().__init__(f"Nothing accepted connections on {host}:{port} within {timeout:g}s")


class ProvisioningError(CorelabError):
    """A one-shot provisioning batch failed."""


class DependencyError(CorelabError):
    """A dependency container has no resolvable runtime address."""
