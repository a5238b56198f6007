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
Execution of one-shot provisioning batches (schema loads, record inserts)
against a dependency's runtime address.
"""
from typing import List

from ..exceptions import ProvisioningError
from ..MODELS.catalog import Catalog
from ..MODELS.component import ProvisioningStep
from ..RUNTIME.base import ContainerRuntime
from ..UTILS.templating import TemplateRenderer
from .resolution_context import ResolutionContext


class ProvisioningRunner:
    """
    Sends literal statement batches to a dependency through a throw-away
    client container. Batches are opaque; no retry is attempted.
    """

    def __init__(self, catalog: Catalog, runtime: ContainerRuntime, renderer: TemplateRenderer):
        self.catalog = catalog
        self.runtime = runtime
        self.renderer = renderer

    def build_command(self, step: ProvisioningStep, context: ResolutionContext) -> List[str]:
        """
        Renders the client prefix and the batch into a command line.

        :param step: Step to render.
        :param context: Resolution context of the component being launched.
        :return: Command whose last element is the rendered batch.
        """
        address = context.ip(step.target)
        variables = context.variables({"address": address})
        command = [self.renderer.render(part, variables) for part in step.client]
        command.append(self.renderer.render(step.batch, variables).strip())
        return command

    def image_for(self, step: ProvisioningStep, context: ResolutionContext) -> str:
        if step.image:
            return self.renderer.render(step.image, context.variables())
        target = self.catalog.components[step.target.upper()]
        return self.renderer.render(target.container.image, context.variables())

    def execute(self, owner: str, step: ProvisioningStep, context: ResolutionContext) -> str:
        """
        Runs a single provisioning step.

        :param owner: Tag of the component the step belongs to.
        :return: Output of the client.
        :raises ProvisioningError: If the batch fails.
        """
        command = self.build_command(step, context)
        image = self.image_for(step, context)
        print(f"[{owner}] provisioning '{step.name}' against {step.target}...")
        try:
            output = self.runtime.exec_one_shot(image, command)
        except ProvisioningError as e:
            raise ProvisioningError(f"[{owner}] step '{step.name}' failed: {e}") from e
        print(f"[{owner}] '{step.name}' done.")
        return output
