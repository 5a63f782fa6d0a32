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
Parser for compose-style topology documents.

Parsing is pure: the environment is not consulted here. Bindings are only
classified as literal, required or optional-with-default, and resolved later
by the plan renderer.
"""
import logging
import os
import re
import shlex
from collections.abc import Hashable
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from ..MODELS.errors import ParseError
from ..MODELS.topology import (
    BindingSource,
    BuildSource,
    EnvBinding,
    PortMapping,
    ReadinessCheck,
    ServiceSpec,
    Topology,
    VolumeMount,
    VolumeSpec,
)
from ..UTILS.string_interpolation import EnvironmentInterpolator

logger = logging.getLogger(__name__)

SERVICE_KEYS = {
    'image', 'build', 'command', 'environment', 'volumes', 'ports',
    'depends_on', 'healthcheck',
}
VOLUME_KEYS = {'persistent'}
TOP_LEVEL_KEYS = {'name', 'services', 'volumes', 'version'}

DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|us|h|m|s)')
DURATION_UNITS = {'h': 3600.0, 'm': 60.0, 's': 1.0, 'ms': 0.001, 'us': 0.000001}


class _UniqueKeyLoader(yaml.SafeLoader):
    """
    Safe loader that refuses mappings with repeated keys.
    """
    def construct_mapping(self, node, deep=False):
        if isinstance(node, yaml.MappingNode):
            seen = set()
            for key_node, _ in node.value:
                if key_node.tag == 'tag:yaml.org,2002:merge':
                    continue
                key = self.construct_object(key_node, deep=deep)
                if not isinstance(key, Hashable):
                    continue
                if key in seen:
                    raise yaml.constructor.ConstructorError(
                        "while constructing a mapping", node.start_mark,
                        f"found duplicate key {key!r}", key_node.start_mark)
                seen.add(key)
        return super().construct_mapping(node, deep=deep)


def project_name_from_path(path: str) -> str:
    """
    Derives a project name from the directory holding a topology file.

    :param path: Path to the topology file.
    :return: A lowercase name made of letters, digits, ``-`` and ``_``.
    """
    directory = os.path.basename(os.path.dirname(os.path.abspath(path)))
    name = re.sub(r'[^a-z0-9_-]', '', directory.lower()).lstrip('_-')
    return name or 'default'


class TopologyParser:
    """
    Parser for topology files.
    """
    def __init__(self, project_name: Optional[str] = None):
        """
        Initializes the parser.

        :param project_name: Project name to use when the document has no ``name`` key.
        """
        self.project_name = project_name

    def parse(self, topology_path: str) -> Topology:
        """
        Parses a topology file from a path.

        :param topology_path: Path to the topology file.
        :return: Parsed topology.
        :raises ParseError: If the file cannot be read or is invalid.
        """
        try:
            with open(topology_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise ParseError(f"cannot read topology file: {e.strerror or e}") from e
        default_name = self.project_name or project_name_from_path(topology_path)
        return self.parse_from_string(content, default_name=default_name)

    def parse_from_string(self, content: str, default_name: Optional[str] = None) -> Topology:
        """
        Parses a topology document from a YAML string.

        :param content: YAML content of the document.
        :param default_name: Project name used when the document names none.
        :return: Parsed topology.
        """
        try:
            data = yaml.load(content, Loader=_UniqueKeyLoader)
        except yaml.YAMLError as e:
            raise ParseError(f"invalid YAML: {e}") from e
        return self.parse_document(data, default_name=default_name)

    def parse_document(self, data: Any, default_name: Optional[str] = None) -> Topology:
        """
        Builds a topology from an already loaded document.

        :param data: The document, a mapping (None counts as empty).
        :param default_name: Project name used when the document names none.
        :return: Parsed topology.
        """
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ParseError("top level of a topology must be a mapping")
        self._warn_unknown(data, TOP_LEVEL_KEYS, 'top level')

        volumes = {}
        for name, spec in self._mapping(data.get('volumes'), 'volumes').items():
            name = self._name(name, 'volumes')
            volumes[name] = self._parse_volume(name, spec)

        services = {}
        for name, spec in self._mapping(data.get('services'), 'services').items():
            name = self._name(name, 'services')
            services[name] = self._parse_service(name, spec)

        project = data.get('name') or self.project_name or default_name or 'default'
        try:
            return Topology(name=str(project), services=services, volumes=volumes)
        except ValidationError as e:
            raise self._from_validation(e, None) from e

    def _parse_volume(self, name: str, spec: Any) -> VolumeSpec:
        """
        Parses one entry of the top level ``volumes`` mapping.

        :param name: Volume name.
        :param spec: ``None`` or a mapping with an optional ``persistent`` flag.
        :return: A VolumeSpec instance.
        """
        where = f"volumes.{name}"
        spec = self._mapping(spec, where)
        self._warn_unknown(spec, VOLUME_KEYS, where)
        persistent = spec.get('persistent', True)
        if not isinstance(persistent, bool):
            raise ParseError("persistent must be true or false", f"{where}.persistent")
        return VolumeSpec(name=name, persistent=persistent)

    def _parse_service(self, name: str, spec: Any) -> ServiceSpec:
        """
        Parses a single service definition.

        :param name: The name of the service.
        :param spec: The service specification mapping.
        :return: A ServiceSpec instance.
        """
        where = f"services.{name}"
        if not isinstance(spec, Mapping):
            raise ParseError("service definition must be a mapping", where)
        self._warn_unknown(spec, SERVICE_KEYS, where)

        image = spec.get('image')
        if image is not None and not isinstance(image, str):
            raise ParseError("image must be a string", f"{where}.image")

        try:
            return ServiceSpec(
                name=name,
                image=image or None,
                build=self._parse_build(spec.get('build'), f"{where}.build"),
                command=self._parse_command(spec.get('command'), f"{where}.command"),
                environment=self._parse_environment(spec.get('environment'), f"{where}.environment"),
                volumes=self._parse_mounts(spec.get('volumes'), f"{where}.volumes"),
                ports=self._parse_ports(spec.get('ports'), f"{where}.ports"),
                depends_on=self._parse_depends_on(spec.get('depends_on'), f"{where}.depends_on"),
                readiness=self._parse_healthcheck(spec.get('healthcheck'), f"{where}.healthcheck"),
            )
        except ValidationError as e:
            raise self._from_validation(e, where) from e

    def _parse_build(self, build: Any, where: str) -> Optional[BuildSource]:
        if build is None:
            return None
        if isinstance(build, str):
            return BuildSource(context=build)
        build = self._mapping(build, where)
        args = build.get('args') or {}
        if isinstance(args, list):
            args = dict(self._split_assignment(a, f"{where}.args", allow_bare=False) for a in args)
        args = {str(k): self._scalar(v, f"{where}.args.{k}") for k, v in self._mapping(args, f"{where}.args").items()}
        return BuildSource(
            context=str(build.get('context') or '.'),
            dockerfile=str(build.get('dockerfile') or 'Dockerfile'),
            args=args,
        )

    def _parse_command(self, command: Any, where: str) -> Tuple[str, ...]:
        if command is None:
            return ()
        if isinstance(command, str):
            try:
                return tuple(shlex.split(command))
            except ValueError as e:
                raise ParseError(str(e), where) from e
        if isinstance(command, list):
            return tuple(self._scalar(part, f"{where}[{i}]") for i, part in enumerate(command))
        raise ParseError("command must be a string or a list", where)

    def _parse_environment(self, env_spec: Any, where: str) -> Tuple[EnvBinding, ...]:
        """
        Classifies each environment entry as a literal or an environment reference.

        :param env_spec: A mapping, or a list of ``KEY=VALUE`` / ``KEY`` strings.
        :param where: Location used in error messages.
        :return: The bindings in declaration order.
        """
        if env_spec is None:
            return ()

        pairs: List[Tuple[str, Optional[str]]] = []
        if isinstance(env_spec, Mapping):
            for key, value in env_spec.items():
                key = self._name(key, where)
                pairs.append((key, None if value is None else self._scalar(value, f"{where}.{key}")))
        elif isinstance(env_spec, list):
            seen = set()
            for i, entry in enumerate(env_spec):
                key, value = self._split_assignment(entry, f"{where}[{i}]", allow_bare=True)
                if key in seen:
                    raise ParseError(f"variable {key} is set more than once", f"{where}[{i}]")
                seen.add(key)
                pairs.append((key, value))
        else:
            raise ParseError("environment must be a mapping or a list", where)

        return tuple(self._binding(key, value, f"{where}.{key}") for key, value in pairs)

    def _binding(self, key: str, value: Optional[str], at: str) -> EnvBinding:
        if value is None:
            # written back as ${KEY}, so KEY has to read back as a reference
            if EnvironmentInterpolator.sole_reference(EnvironmentInterpolator.reference(key)) != (key, None):
                raise ParseError(f"{key!r} cannot be taken from the environment, give it a value", at)
            return EnvBinding(name=key, source=BindingSource.ENVIRONMENT, variable=key)
        reference = EnvironmentInterpolator.sole_reference(value)
        if reference:
            variable, default = reference
            return EnvBinding(name=key, source=BindingSource.ENVIRONMENT,
                              variable=variable, default=default)
        return EnvBinding(name=key, source=BindingSource.LITERAL, value=value)

    def _parse_mounts(self, volumes: Any, where: str) -> Tuple[VolumeMount, ...]:
        mounts = []
        for i, v in enumerate(self._list(volumes, where)):
            at = f"{where}[{i}]"
            if isinstance(v, str):
                parts = v.split(':')
                if len(parts) == 2:
                    mounts.append(VolumeMount(source=parts[0], target=parts[1]))
                elif len(parts) == 3 and parts[2] in ('ro', 'rw'):
                    mounts.append(VolumeMount(source=parts[0], target=parts[1], read_only=(parts[2] == 'ro')))
                elif len(parts) == 1:
                    raise ParseError("anonymous volumes are not supported, name the volume", at)
                else:
                    raise ParseError(f"cannot parse volume mount {v!r}", at)
            elif isinstance(v, Mapping):
                if 'source' not in v or 'target' not in v:
                    raise ParseError("volume mount needs source and target", at)
                mounts.append(VolumeMount(
                    source=str(v['source']),
                    target=str(v['target']),
                    read_only=bool(v.get('read_only', False)),
                ))
            else:
                raise ParseError("volume mount must be a string or a mapping", at)
        return tuple(mounts)

    def _parse_ports(self, ports: Any, where: str) -> Tuple[PortMapping, ...]:
        """
        Parses published ports.

        Accepts ``"8080:80"``, ``"80"``, ``"127.0.0.1:8080:80"``, a ``/udp``
        suffix, bare integers and ``{target, published, protocol, host_ip}``.
        """
        result = []
        for i, p in enumerate(self._list(ports, where)):
            at = f"{where}[{i}]"
            if isinstance(p, bool):
                raise ParseError("port must be a number, a string or a mapping", at)
            if isinstance(p, int):
                result.append(PortMapping(container=p))
            elif isinstance(p, str):
                result.append(self._parse_port_string(p, at))
            elif isinstance(p, Mapping):
                if 'target' not in p:
                    raise ParseError("port mapping needs a target", at)
                result.append(PortMapping(
                    container=self._port_number(p['target'], at),
                    host=self._port_number(p['published'], at) if p.get('published') is not None else None,
                    protocol=str(p.get('protocol', 'tcp')),
                    host_ip=p.get('host_ip'),
                ))
            else:
                raise ParseError("port must be a number, a string or a mapping", at)
        return tuple(result)

    def _parse_port_string(self, text: str, at: str) -> PortMapping:
        protocol = 'tcp'
        if '/' in text:
            text, protocol = text.rsplit('/', 1)
        parts = text.split(':')
        host_ip = None
        if len(parts) == 3:
            host_ip = parts.pop(0) or None
        if len(parts) == 2:
            host = self._port_number(parts[0], at) if parts[0] else None
            return PortMapping(container=self._port_number(parts[1], at), host=host,
                               protocol=protocol, host_ip=host_ip)
        if len(parts) == 1:
            return PortMapping(container=self._port_number(parts[0], at), protocol=protocol)
        raise ParseError(f"cannot parse port {text!r}", at)

    def _port_number(self, value: Any, at: str) -> int:
        if isinstance(value, bool):
            raise ParseError(f"invalid port {value!r}", at)
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            raise ParseError(f"invalid port {value!r}", at) from None

    def _parse_depends_on(self, depends_on: Any, where: str) -> Tuple[str, ...]:
        if depends_on is None:
            return ()
        if isinstance(depends_on, Mapping):
            names = list(depends_on.keys())
        elif isinstance(depends_on, list):
            names = depends_on
        elif isinstance(depends_on, str):
            names = [depends_on]
        else:
            raise ParseError("depends_on must be a list or a mapping", where)

        ordered = []
        for i, dep in enumerate(names):
            dep = self._name(dep, f"{where}[{i}]")
            if dep not in ordered:
                ordered.append(dep)
        return tuple(ordered)

    def _parse_healthcheck(self, check: Any, where: str) -> Optional[ReadinessCheck]:
        """
        Parses a readiness check. ``disable: true`` or a ``NONE`` test means no check.
        """
        if check is None:
            return None
        check = self._mapping(check, where)
        if check.get('disable'):
            return None
        test = check.get('test')
        if isinstance(test, str):
            test = ['CMD-SHELL', test]
        if not isinstance(test, list) or not test:
            raise ParseError("healthcheck test must be a string or a non-empty list", f"{where}.test")
        test = [self._scalar(t, f"{where}.test") for t in test]
        if test[0] == 'NONE':
            return None

        options: Dict[str, Any] = {'test': tuple(test)}
        for key in ('interval', 'timeout', 'start_period'):
            if check.get(key) is not None:
                options[key] = self._duration(check[key], f"{where}.{key}")
        if check.get('retries') is not None:
            options['retries'] = check['retries']
        return ReadinessCheck(**options)

    def _duration(self, value: Any, at: str) -> float:
        """
        Converts ``30``, ``"30"``, ``"1m30s"`` or ``"500ms"`` to seconds.
        """
        if isinstance(value, bool):
            raise ParseError(f"invalid duration {value!r}", at)
        if isinstance(value, (int, float)):
            return float(value)
        text = str(value).strip()
        try:
            return float(text)
        except ValueError:
            pass
        parts = DURATION_PART.findall(text)
        if not parts or ''.join(n + u for n, u in parts) != text:
            raise ParseError(f"invalid duration {value!r}", at)
        return sum(float(n) * DURATION_UNITS[u] for n, u in parts)

    def _split_assignment(self, entry: Any, at: str, allow_bare: bool) -> Tuple[str, Optional[str]]:
        if not isinstance(entry, str):
            raise ParseError("expected a KEY=VALUE string", at)
        if '=' in entry:
            key, value = entry.split('=', 1)
        elif allow_bare:
            key, value = entry, None
        else:
            raise ParseError("expected a KEY=VALUE string", at)
        return self._name(key.strip(), at), value

    def _scalar(self, value: Any, at: str) -> str:
        """
        Renders a YAML scalar the way it would be written in a shell.
        """
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, (str, int, float)):
            return str(value)
        raise ParseError("expected a string, number or boolean", at)

    def _name(self, name: Any, at: str) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ParseError(f"names must be non-empty strings, got {name!r}", at)
        return name

    def _mapping(self, value: Any, at: str) -> Mapping:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ParseError("expected a mapping", at)
        return value

    def _list(self, value: Any, at: str) -> list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ParseError("expected a list", at)
        return value

    def _warn_unknown(self, spec: Mapping, known: set, where: str) -> None:
        for key in spec:
            if key not in known:
                logger.warning("%s: ignoring unsupported key %r", where, key)

    def _from_validation(self, error: ValidationError, where: Optional[str]) -> ParseError:
        """
        Turns the first pydantic error into a ParseError with a readable location.
        """
        first = error.errors()[0]
        loc = '.'.join(str(part) for part in first.get('loc', ()))
        location = '.'.join(part for part in (where, loc) if part) or None
        message = first.get('msg', str(error))
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        return ParseError(message, location)


def parse(raw: Union[str, Mapping, None], project_name: Optional[str] = None) -> Topology:
    """
    Parses a topology from YAML text or an already loaded mapping.

    :param raw: The document.
    :param project_name: Project name used when the document names none.
    :return: Parsed topology.
    :raises ParseError: If the document is malformed or inconsistent.
    """
    parser = TopologyParser(project_name=project_name)
    if isinstance(raw, str):
        return parser.parse_from_string(raw)
    return parser.parse_document(raw)
