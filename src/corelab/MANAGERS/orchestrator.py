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
Sequenced launch of the lab components, with provisioning between steps.
"""
from typing import Dict, Iterable, List, Optional, Set

from ..exceptions import NetworkProbeError
from ..MODELS.catalog import Catalog
from ..MODELS.component import (
    Component,
    ComponentSpec,
    ComponentState,
    HostNetwork,
    ReadinessTarget,
    RuntimeInfo,
    RuntimeState,
)
from ..RUNNERS.dependency_resolver import DependencyResolver
from ..RUNNERS.provisioning_runner import ProvisioningRunner
from ..RUNNERS.resolution_context import ResolutionContext
from ..RUNTIME.base import ContainerRuntime
from ..UTILS.settings import Settings
from ..UTILS.templating import TemplateRenderer
from .container_handle import COMPONENT_LABEL, SPEC_HASH_LABEL, ContainerHandle
from .readiness import ReadinessWaiter


class Orchestrator:
    """
    Starts components one at a time in dependency order. Later components
    read the runtime addresses of earlier ones, so nothing runs in parallel.

    Any failure aborts the run. Containers started before the failure are
    left running.
    """

    def __init__(self,
                 catalog: Catalog,
                 runtime: ContainerRuntime,
                 host: Optional[HostNetwork],
                 settings: Optional[Settings] = None,
                 waiter: Optional[ReadinessWaiter] = None):
        """
        Initializes the orchestrator.

        :param catalog: Components and aliases that can be requested.
        :param runtime: Container runtime to drive.
        :param host: Host network facts, discovered once per process. Only
            needed to launch components.
        :param settings: Platform, registry and timeouts.
        :param waiter: Readiness waiter; built from settings when omitted.
        """
        self.catalog = catalog
        self.runtime = runtime
        self.settings = settings or Settings()
        self.resolver = DependencyResolver(catalog)
        self.renderer = TemplateRenderer()
        self.waiter = waiter or ReadinessWaiter(
            runtime,
            state_timeout=self.settings.state_timeout,
            socket_timeout=self.settings.socket_timeout,
            interval=self.settings.poll_interval,
        )
        self.handle = ContainerHandle(runtime, self.waiter)
        self.context = ResolutionContext(catalog, runtime, host, self.settings)
        self.provisioner = ProvisioningRunner(catalog, runtime, self.renderer)
        self.states: Dict[str, ComponentState] = {}
        self.recreated: Set[str] = set()

    def plan(self, tags: Iterable[str], include_dependencies: bool = True) -> List[str]:
        """
        Returns the start order for the requested tags without touching the runtime.

        :raises ConfigurationError: On an empty request or unknown tags.
        """
        return self.resolver.resolve(tags, include_dependencies)

    def run(self, tags: Iterable[str], include_dependencies: bool = True) -> Dict[str, RuntimeInfo]:
        """
        Launches the requested components.

        :param tags: Requested tags; aliases are expanded.
        :param include_dependencies: Also launch dependencies that were not requested.
        :return: Runtime info of every launched or reused component, by tag.
        """
        order = self.plan(tags, include_dependencies)
        if self.context.host is None:
            raise NetworkProbeError("Host network facts are required to launch components")
        self.states = {tag: ComponentState.NOT_STARTED for tag in order}
        self.recreated = set()
        results: Dict[str, RuntimeInfo] = {}

        print(f"Starting components in order: {', '.join(order)}")
        for tag in order:
            component = self.catalog.components[tag]
            if not component.implemented:
                print(f"[{tag}] not implemented yet, skipping.")
                self._transition(tag, ComponentState.SKIPPED)
                continue
            try:
                results[tag] = self._launch(component)
            except Exception:
                self._transition(tag, ComponentState.FAILED)
                raise

        print(f"All requested components are ready: {', '.join(results) or 'none'}.")
        return results

    def down(self, tags: Iterable[str], include_dependencies: bool = False) -> List[str]:
        """
        Force-removes the containers of the requested components, dependents first.

        :return: Names of the containers that were targeted.
        """
        order = self.plan(tags, include_dependencies)
        removed = []
        for tag in reversed(order):
            name = self.catalog.container_name(tag)
            if not name:
                continue
            self.handle.remove(name)
            removed.append(name)
        return removed

    def ps(self) -> Dict[str, str]:
        """
        Live runtime state of every component in the catalog.
        """
        status = {}
        for tag in self.catalog.tags:
            name = self.catalog.container_name(tag)
            status[tag] = self.handle.state(name).value if name else "not-implemented"
        return status

    def build_spec(self, component: Component) -> ComponentSpec:
        """
        Renders a component's container template into a ComponentSpec,
        resolving host facts and dependency addresses.
        """
        template = component.container
        variables = self.context.variables()
        readiness = None
        if template.readiness:
            host = template.readiness.host
            readiness = ReadinessTarget(
                host=self.renderer.render(host, variables) if host else None,
                port=template.readiness.port,
            )

        spec = ComponentSpec(
            name=template.name,
            image=self.renderer.render(template.image, variables),
            environment=self.renderer.render_mapping(template.environment, variables),
            ports=dict(template.ports),
            privileged=template.privileged,
            cap_add=list(template.cap_add),
            devices=list(template.devices),
            cpu_rt_runtime=template.cpu_rt_runtime,
            network_mode=template.network_mode,
            readiness=readiness,
        )
        labels = {COMPONENT_LABEL: component.tag, SPEC_HASH_LABEL: spec.spec_hash()}
        return spec.model_copy(update={"labels": labels})

    def _launch(self, component: Component) -> RuntimeInfo:
        tag = component.tag
        if self.handle.state(component.container.name) is RuntimeState.RUNNING:
            # A reused owner only repeats the steps whose target came back empty.
            pre_start = [s for s in component.pre_start if s.target.upper() in self.recreated]
            post_start = [s for s in component.post_start if s.target.upper() in self.recreated]
            if pre_start or post_start:
                self._transition(tag, ComponentState.PROVISIONING)
            for step in pre_start:
                self.provisioner.execute(tag, step, self.context)
            info = self.handle.run(self.build_spec(component))
            for step in post_start:
                self.provisioner.execute(tag, step, self.context)
            self._transition(tag, ComponentState.READY)
            return info

        self._transition(tag, ComponentState.PROVISIONING)
        for step in component.pre_start:
            self.provisioner.execute(tag, step, self.context)

        self._transition(tag, ComponentState.STARTING)
        spec = self.build_spec(component)
        info = self.handle.run(spec, on_transition=lambda state: self._transition(tag, state))
        if not info.reused:
            self.recreated.add(tag)

        for step in component.post_start:
            self.provisioner.execute(tag, step, self.context)

        self._transition(tag, ComponentState.READY)
        print(f"[{tag}] ready ({info.name} at {info.ip or 'host network'}).")
        return info

    def _transition(self, tag: str, state: ComponentState):
        self.states[tag] = state
