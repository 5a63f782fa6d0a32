"""
Models for rendered plans and for what an executor reports back.
"""
from typing import Annotated, Dict, List, Literal, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

from .topology import PortMapping, ReadinessCheck, VolumeMount


class BuildImage(BaseModel):
    """Build the image of a service from its build source."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["build_image"] = "build_image"
    service: str
    tag: str
    context: str
    dockerfile: str = "Dockerfile"
    args: Dict[str, str] = {}

    def describe(self) -> str:
        return f"BuildImage({self.service})"


class CreateVolume(BaseModel):
    """Create a named volume unless the engine already has it."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["create_volume"] = "create_volume"
    volume: str
    engine_name: str
    persistent: bool = True

    def describe(self) -> str:
        return f"CreateVolume({self.volume})"


class StartService(BaseModel):
    """Start a service with its environment fully resolved."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["start_service"] = "start_service"
    service: str
    container_name: str
    image: str
    environment: Dict[str, str] = {}
    ports: Tuple[PortMapping, ...] = ()
    volumes: Tuple[VolumeMount, ...] = ()
    command: Tuple[str, ...] = ()

    def describe(self) -> str:
        return f"StartService({self.service})"


class WaitHealthy(BaseModel):
    """Block until a started service passes its readiness check."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["wait_healthy"] = "wait_healthy"
    service: str
    container_name: str
    check: ReadinessCheck

    def describe(self) -> str:
        return f"WaitHealthy({self.service})"


Step = Annotated[
    Union[BuildImage, CreateVolume, StartService, WaitHealthy],
    Field(discriminator="kind"),
]


class Plan(BaseModel):
    """
    Ordered bring-up steps for one project.
    """
    model_config = ConfigDict(frozen=True)

    project: str
    steps: Tuple[Step, ...] = ()

    def __len__(self) -> int:
        return len(self.steps)

    def describe(self) -> List[str]:
        """Short ``Kind(name)`` form of every step, in order."""
        return [step.describe() for step in self.steps]

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, data: str) -> "Plan":
        return cls.model_validate_json(data)


class ExecutionResult(BaseModel):
    """
    What an executor reports for one step.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    exit_code: int = 0
    detail: str = ""

    @classmethod
    def ok(cls, detail: str = "") -> "ExecutionResult":
        return cls(success=True, exit_code=0, detail=detail)

    @classmethod
    def failed(cls, exit_code: int, detail: str = "") -> "ExecutionResult":
        return cls(success=False, exit_code=exit_code, detail=detail)
