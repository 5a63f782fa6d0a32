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
Converter rendering a plan as a human-readable step list.
"""
from jinja2 import Template

from ..MODELS.plan import Plan

PLAN_TEMPLATE = """\
Plan for project {{ plan.project }} ({{ plan.steps | length }} step{{ '' if plan.steps | length == 1 else 's' }})
{% for step in plan.steps %}
{{ "%3d" | format(loop.index) }}. {{ step.describe() }}
{% if step.kind == 'build_image' %}
       tag {{ step.tag }} from {{ step.context }} ({{ step.dockerfile }})
{% elif step.kind == 'create_volume' %}
       volume {{ step.engine_name }}{{ '' if step.persistent else ' (not persistent)' }}
{% elif step.kind == 'start_service' %}
       image {{ step.image }} as {{ step.container_name }}
{% if step.ports %}
       ports {{ step.ports | map('string') | join(', ') }}
{% endif %}
{% if step.environment and show_env %}
{% for key, value in step.environment.items() %}
       env {{ key }}={{ value }}
{% endfor %}
{% elif step.environment %}
       env {{ step.environment.keys() | join(', ') }}
{% endif %}
{% elif step.kind == 'wait_healthy' %}
       check {{ step.check.test | join(' ') }} every {{ step.check.interval }}s, {{ step.check.retries }} tries
{% endif %}
{% endfor %}
"""


class PlanTextConverter:
    """
    Formats plans for the ``plan`` command.
    """
    def __init__(self, show_env: bool = False):
        """
        :param show_env: Print environment values, not just their names.
        """
        self.show_env = show_env
        self.template = Template(PLAN_TEMPLATE, trim_blocks=True, lstrip_blocks=True,
                                 keep_trailing_newline=True)

    def convert(self, plan: Plan) -> str:
        return self.template.render(plan=plan, show_env=self.show_env)
