"""
Models for topologies: services, their bindings, mounts and ports, and volumes.
"""
from typing import Dict, Optional, Tuple
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator

BIND_MOUNT_PREFIXES = (".", "/", "~")


class BindingSource(str, Enum):
    """
    Where the value of an environment binding comes from.
    """
    LITERAL = "literal"
    ENVIRONMENT = "environment"


class EnvBinding(BaseModel):
    """
    A single environment variable handed to a service.

    Literal values may embed ``${VAR}`` placeholders; environment bindings
    read ``variable`` from the caller's environment at render time.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    source: BindingSource = BindingSource.LITERAL
    value: Optional[str] = None
    variable: Optional[str] = None
    default: Optional[str] = None

    @model_validator(mode="after")
    def _check_source(self) -> "EnvBinding":
        if self.source == BindingSource.LITERAL and self.value is None:
            raise ValueError(f"literal binding {self.name} needs a value")
        if self.source == BindingSource.ENVIRONMENT and not self.variable:
            raise ValueError(f"environment binding {self.name} needs a variable")
        return self

    @property
    def required(self) -> bool:
        """True when the binding has to come from the environment."""
        return self.source == BindingSource.ENVIRONMENT and self.default is None


class BuildSource(BaseModel):
    """
    Where to build a service image from.
    """
    model_config = ConfigDict(frozen=True)

    context: str = "."
    dockerfile: str = "Dockerfile"
    args: Dict[str, str] = {}


class ReadinessCheck(BaseModel):
    """
    Command that reports whether a started service is ready. Times are in seconds.
    """
    model_config = ConfigDict(frozen=True)

    test: Tuple[str, ...] = Field(min_length=1)
    interval: float = Field(default=30.0, ge=0)
    timeout: float = Field(default=30.0, gt=0)
    retries: int = Field(default=3, ge=1)
    start_period: float = Field(default=0.0, ge=0)


class VolumeMount(BaseModel):
    """
    Mapping of a named volume or host path onto a path inside the service.
    """
    model_config = ConfigDict(frozen=True)

    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    read_only: bool = False

    @property
    def is_named(self) -> bool:
        return not self.source.startswith(BIND_MOUNT_PREFIXES)

    def __str__(self) -> str:
        suffix = ":ro" if self.read_only else ""
        return f"{self.source}:{self.target}{suffix}"


class PortMapping(BaseModel):
    """
    A published port. ``host`` is None when the engine should pick one.
    """
    model_config = ConfigDict(frozen=True)

    container: int = Field(ge=1, le=65535)
    host: Optional[int] = Field(default=None, ge=1, le=65535)
    protocol: str = "tcp"
    host_ip: Optional[str] = None

    def __str__(self) -> str:
        text = str(self.container)
        if self.host is not None or self.host_ip:
            text = f"{self.host if self.host is not None else ''}:{text}"
        if self.host_ip:
            text = f"{self.host_ip}:{text}"
        if self.protocol != "tcp":
            text = f"{text}/{self.protocol}"
        return text


class ServiceSpec(BaseModel):
    """
    One deployable unit of a topology.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    image: Optional[str] = None
    build: Optional[BuildSource] = None
    command: Tuple[str, ...] = ()

    environment: Tuple[EnvBinding, ...] = ()
    volumes: Tuple[VolumeMount, ...] = ()
    ports: Tuple[PortMapping, ...] = ()

    depends_on: Tuple[str, ...] = ()
    readiness: Optional[ReadinessCheck] = None

    @model_validator(mode="after")
    def _check_source(self) -> "ServiceSpec":
        if not self.image and self.build is None:
            raise ValueError(f"service {self.name} needs an image or a build source")
        seen = set()
        for binding in self.environment:
            if binding.name in seen:
                raise ValueError(f"environment variable {binding.name} is bound twice")
            seen.add(binding.name)
        return self

    def binding(self, name: str) -> Optional[EnvBinding]:
        for binding in self.environment:
            if binding.name == name:
                return binding
        return None

    @property
    def required_variables(self) -> Tuple[str, ...]:
        return tuple(b.variable for b in self.environment if b.required)


class VolumeSpec(BaseModel):
    """
    A named volume. Created on first use, never removed by a plan.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    persistent: bool = True


class Topology(BaseModel):
    """
    A complete set of services and volumes. Mapping order is declaration order.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(default="default", pattern=r"^[a-z0-9][a-z0-9_-]*$")
    services: Dict[str, ServiceSpec] = {}
    volumes: Dict[str, VolumeSpec] = {}

    @model_validator(mode="after")
    def _check_references(self) -> "Topology":
        for key, service in self.services.items():
            if key != service.name:
                raise ValueError(f"service {service.name} is registered as {key}")
            for dep in service.depends_on:
                if dep not in self.services:
                    raise ValueError(f"service {key} depends on undeclared service {dep}")
            for mount in service.volumes:
                if mount.is_named and mount.source not in self.volumes:
                    raise ValueError(f"service {key} mounts undeclared volume {mount.source}")
        for key, volume in self.volumes.items():
            if key != volume.name:
                raise ValueError(f"volume {volume.name} is registered as {key}")
        return self
