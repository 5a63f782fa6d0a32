"""
Writes topologies back out in the document format the parser reads.
"""
from typing import Any, Dict

import yaml

from ..MODELS.topology import BindingSource, ServiceSpec, Topology
from ..UTILS.string_interpolation import EnvironmentInterpolator


class TopologySerializer:
    """
    Serializer producing normalized topology documents.

    Every optional section is written in its long form, so parsing the
    output again yields an equal Topology.
    """
    def to_document(self, topology: Topology) -> Dict[str, Any]:
        """
        Converts a topology into plain dictionaries and lists.

        :param topology: The topology to convert.
        :return: A document accepted by ``TopologyParser.parse_document``.
        """
        document: Dict[str, Any] = {'name': topology.name, 'services': {}}
        for name, service in topology.services.items():
            document['services'][name] = self._service(service)
        if topology.volumes:
            document['volumes'] = {
                name: {'persistent': volume.persistent}
                for name, volume in topology.volumes.items()
            }
        return document

    def dump(self, topology: Topology) -> str:
        """
        Serializes a topology as YAML, keeping declaration order.

        :param topology: The topology to serialize.
        :return: YAML text.
        """
        return yaml.safe_dump(self.to_document(topology), sort_keys=False, default_flow_style=False)

    def _service(self, service: ServiceSpec) -> Dict[str, Any]:
        spec: Dict[str, Any] = {}
        if service.image:
            spec['image'] = service.image
        if service.build is not None:
            spec['build'] = {
                'context': service.build.context,
                'dockerfile': service.build.dockerfile,
            }
            if service.build.args:
                spec['build']['args'] = dict(service.build.args)
        if service.command:
            spec['command'] = list(service.command)
        if service.environment:
            spec['environment'] = {}
            for binding in service.environment:
                if binding.source == BindingSource.ENVIRONMENT:
                    value = EnvironmentInterpolator.reference(binding.variable, binding.default)
                else:
                    value = binding.value
                spec['environment'][binding.name] = value
        if service.volumes:
            spec['volumes'] = [str(mount) for mount in service.volumes]
        if service.ports:
            spec['ports'] = [str(port) for port in service.ports]
        if service.depends_on:
            spec['depends_on'] = list(service.depends_on)
        if service.readiness is not None:
            check = service.readiness
            spec['healthcheck'] = {
                'test': list(check.test),
                'interval': check.interval,
                'timeout': check.timeout,
                'retries': check.retries,
                'start_period': check.start_period,
            }
        return spec
