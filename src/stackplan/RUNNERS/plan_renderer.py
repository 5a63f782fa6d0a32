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
Rendering of a resolved topology into an ordered plan of bring-up steps.
"""
import logging
import os
from typing import Dict, List, Mapping, Optional, Sequence, Set

from ..MODELS.errors import MissingBinding, MissingBindingError, ParseError
from ..MODELS.plan import BuildImage, CreateVolume, Plan, StartService, WaitHealthy
from ..MODELS.topology import BindingSource, ServiceSpec, Topology, VolumeMount
from ..UTILS.string_interpolation import EnvironmentInterpolator

logger = logging.getLogger(__name__)


class PlanRenderer:
    """
    Turns a topology and a start order into a Plan.

    Rendering reads nothing but its inputs and the context given here: the
    same topology, order and context always give the same plan.
    """
    def __init__(self, context: Optional[Mapping[str, str]] = None):
        """
        Initializes the renderer with the environment used to resolve bindings.

        :param context: Variables available to ``${VAR}`` bindings. Defaults
            to a snapshot of the process environment.
        """
        self.context = dict(os.environ) if context is None else dict(context)

    def render(self, topology: Topology, order: Sequence[str]) -> Plan:
        """
        Emits, per service in order: BuildImage when it has a build source,
        CreateVolume for each named volume not created yet, StartService,
        and WaitHealthy when it declares a readiness check.

        :param topology: The parsed topology.
        :param order: Service names as returned by the dependency resolver.
        :return: The rendered plan.
        :raises MissingBindingError: Listing every unresolved required binding.
        :raises ParseError: If ``order`` starts a service before one of its dependencies.
        """
        self._check_order(topology, order)

        missing: List[MissingBinding] = []
        environments = {
            name: self.resolve_environment(topology.services[name], missing)
            for name in order
        }
        if missing:
            raise MissingBindingError(missing)

        steps = []
        created: Set[str] = set()
        for name in order:
            service = topology.services[name]
            image = self.image_for(topology, service)
            container_name = self.container_name(topology, name)

            if service.build is not None:
                steps.append(BuildImage(
                    service=name,
                    tag=image,
                    context=service.build.context,
                    dockerfile=service.build.dockerfile,
                    args=service.build.args,
                ))

            for mount in service.volumes:
                if mount.is_named and mount.source not in created:
                    created.add(mount.source)
                    steps.append(CreateVolume(
                        volume=mount.source,
                        engine_name=self.volume_name(topology, mount.source),
                        persistent=topology.volumes[mount.source].persistent,
                    ))

            steps.append(StartService(
                service=name,
                container_name=container_name,
                image=image,
                environment=environments[name],
                ports=service.ports,
                volumes=tuple(self._engine_mount(topology, m) for m in service.volumes),
                command=service.command,
            ))

            if service.readiness is not None:
                steps.append(WaitHealthy(
                    service=name,
                    container_name=container_name,
                    check=service.readiness,
                ))

        plan = Plan(project=topology.name, steps=tuple(steps))
        logger.debug("Rendered %d steps for project %s", len(plan), topology.name)
        return plan

    def resolve_environment(self,
                            service: ServiceSpec,
                            missing: Optional[List[MissingBinding]] = None) -> Dict[str, str]:
        """
        Resolves every binding of a service against the context.

        :param service: The service whose environment to resolve.
        :param missing: Unresolved required bindings are appended here. When
            omitted, a MissingBindingError is raised for this service alone.
        :return: Variable name to value, in declaration order.
        """
        collect = [] if missing is None else missing
        resolved: Dict[str, str] = {}
        for binding in service.environment:
            if binding.source == BindingSource.ENVIRONMENT:
                value = self.context.get(binding.variable)
                if binding.default is not None and not value:
                    value = binding.default
                if value is None:
                    collect.append(MissingBinding(service.name, binding.name, binding.variable))
                    continue
                resolved[binding.name] = value
            else:
                unset: List[str] = []
                resolved[binding.name] = EnvironmentInterpolator.interpolate(binding.value, self.context, unset)
                collect.extend(MissingBinding(service.name, binding.name, var) for var in unset)

        if missing is None and collect:
            raise MissingBindingError(collect)
        return resolved

    @staticmethod
    def image_for(topology: Topology, service: ServiceSpec) -> str:
        """
        The image a service runs: its declared image, or the tag its build gets.
        """
        return service.image or f"{topology.name}-{service.name}"

    @staticmethod
    def container_name(topology: Topology, service_name: str) -> str:
        return f"{topology.name}-{service_name}"

    @staticmethod
    def volume_name(topology: Topology, volume: str) -> str:
        return f"{topology.name}_{volume}"

    def _engine_mount(self, topology: Topology, mount: VolumeMount) -> VolumeMount:
        if not mount.is_named:
            return mount
        return mount.model_copy(update={'source': self.volume_name(topology, mount.source)})

    def _check_order(self, topology: Topology, order: Sequence[str]) -> None:
        seen: Set[str] = set()
        for name in order:
            if name not in topology.services:
                raise ParseError(f"order names unknown service {name}")
            if name in seen:
                raise ParseError(f"order names service {name} twice")
            for dep in topology.services[name].depends_on:
                if dep not in seen:
                    raise ParseError(f"order starts {name} before its dependency {dep}")
            seen.add(name)


def render(topology: Topology, order: Sequence[str], context: Optional[Mapping[str, str]] = None) -> Plan:
    """
    Shortcut for ``PlanRenderer(context).render``.
    """
    return PlanRenderer(context).render(topology, order)
