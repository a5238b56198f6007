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
Rendering of catalog templates (image references, environment values,
provisioning batches) with jinja2.
"""
from typing import Any, Dict

from jinja2 import Environment, StrictUndefined, TemplateError

from ..exceptions import ConfigurationError, CorelabError


class TemplateRenderer:
    """
    Renders catalog strings against a resolution context.
    Undefined names are errors rather than empty strings.
    """

    def __init__(self):
        self.env = Environment(undefined=StrictUndefined, keep_trailing_newline=False)

    def render(self, template: str, context: Dict[str, Any]) -> str:
        """
        Renders a single template string.

        :param template: String possibly containing {{ ... }} expressions.
        :param context: Names visible to the template.
        :return: The rendered string.
        :raises ConfigurationError: On syntax errors or undefined names.
        """
        if "{{" not in template and "{%" not in template:
            return template
        try:
            return self.env.from_string(template).render(**context)
        except CorelabError:
            # Raised by context callables such as ip(); keep their meaning.
            raise
        except TemplateError as e:
            raise ConfigurationError(f"Cannot render '{template}': {e}") from e

    def render_mapping(self, mapping: Dict[str, str], context: Dict[str, Any]) -> Dict[str, str]:
        return {key: self.render(str(value), context) for key, value in mapping.items()}
