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
Blocking readiness checks: container state polling and TCP socket liveness.

A container reaches "running" before the network function inside it binds
its listening socket, so readiness needs both checks in sequence.
"""
import math
import time
from typing import Callable, Optional, Union

from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, wait_fixed

from ..exceptions import SocketTimeoutError, StateTimeoutError
from ..MODELS.component import ReadinessResult, RuntimeState
from ..RUNTIME.base import ContainerRuntime
from ..UTILS.port_probe import is_port_open

DEFAULT_STATE_TIMEOUT = 30.0
DEFAULT_SOCKET_TIMEOUT = 120.0
DEFAULT_INTERVAL = 1.0


class ReadinessWaiter:
    """
    Polls once per interval until a condition holds or the timeout is spent.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        state_timeout: float = DEFAULT_STATE_TIMEOUT,
        socket_timeout: float = DEFAULT_SOCKET_TIMEOUT,
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        probe: Callable[[str, int], bool] = is_port_open,
    ):
        """
        Initializes the waiter.

        :param runtime: Runtime queried for container state.
        :param state_timeout: Default seconds to wait for a container state.
        :param socket_timeout: Default seconds to wait for a listening socket.
        :param interval: Seconds between two checks.
        :param sleep: Sleep function, replaceable in tests.
        :param probe: TCP connect check, replaceable in tests.
        """
        self.runtime = runtime
        self.state_timeout = state_timeout
        self.socket_timeout = socket_timeout
        self.interval = interval
        self.sleep = sleep
        self.probe = probe

    def wait_for_state(self,
                       name: str,
                       target_state: Union[RuntimeState, str] = RuntimeState.RUNNING,
                       timeout: Optional[float] = None) -> ReadinessResult:
        """
        Waits until the container reports target_state (case-insensitive).

        :raises StateTimeoutError: If the state is not reached within timeout.
        """
        timeout = self.state_timeout if timeout is None else timeout
        target = str(getattr(target_state, "value", target_state)).lower()
        observed = {}

        def check() -> bool:
            state = self.runtime.inspect_state(name)
            observed["state"] = state.value
            return state.value.lower() == target

        def narrate(remaining: float):
            print(f"[{name}] state is '{observed.get('state')}', waiting for '{target}' ({remaining:g}s left)")

        try:
            self._poll(check, timeout, narrate)
        except RetryError:
            raise StateTimeoutError(name, target, timeout, observed.get("state"))
        print(f"[{name}] is {target}.")
        return ReadinessResult.READY

    def wait_for_socket(self,
                        host: str,
                        port: int,
                        timeout: Optional[float] = None,
                        label: Optional[str] = None) -> ReadinessResult:
        """
        Waits until a TCP connect to host:port succeeds.

        :raises SocketTimeoutError: If nothing accepts connections within timeout.
        """
        timeout = self.socket_timeout if timeout is None else timeout
        label = label or f"{host}:{port}"

        def check() -> bool:
            return self.probe(host, port)

        def narrate(remaining: float):
            print(f"[{label}] waiting for {host}:{port} to accept connections ({remaining:g}s left)")

        try:
            self._poll(check, timeout, narrate)
        except RetryError:
            raise SocketTimeoutError(host, port, timeout)
        print(f"[{label}] {host}:{port} is accepting connections.")
        return ReadinessResult.READY

    def _poll(self, check: Callable[[], bool], timeout: float, narrate: Callable[[float], None]):
        # One check at t=0 and one per interval until t=timeout.
        attempts = int(math.floor(timeout / self.interval)) + 1

        def before_sleep(retry_state):
            narrate((attempts - retry_state.attempt_number) * self.interval)

        retryer = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self.interval),
            retry=retry_if_result(lambda ok: not ok),
            before_sleep=before_sleep,
            sleep=self.sleep,
        )
        retryer(check)
