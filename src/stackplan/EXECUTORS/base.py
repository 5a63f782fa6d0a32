"""
Interface every executor adapter implements.
"""
from abc import ABC, abstractmethod

from ..MODELS.plan import ExecutionResult, Step


class StepExecutor(ABC):
    """Performs plan steps against a container engine or anything else.

    The adapter owns all mutable process and container state. It may run
    work concurrently internally, but ``run_step`` must only return once the
    step has succeeded or failed.
    """

    @abstractmethod
    def run_step(self, step: Step) -> ExecutionResult:
        """Carry out a single step.

        Args:
            step: The step to perform.

        Returns:
            The outcome. Retrying, if wanted, happens in here.
        """
