"""
Executor that performs nothing and records what it was asked to do.
"""
import logging
from typing import List, Optional

from ..MODELS.plan import ExecutionResult, Step
from .base import StepExecutor

logger = logging.getLogger(__name__)


class DryRunExecutor(StepExecutor):
    """
    Accepts every step, or fails at a chosen one for testing halt behaviour.
    """
    def __init__(self, fail_at: Optional[str] = None, exit_code: int = 1):
        """
        :param fail_at: ``describe()`` text of a step to fail, e.g. ``StartService(web)``.
        :param exit_code: Exit code reported for that failure.
        """
        self.fail_at = fail_at
        self.exit_code = exit_code
        self.submitted: List[Step] = []

    def run_step(self, step: Step) -> ExecutionResult:
        self.submitted.append(step)
        logger.info("dry run: %s", step.describe())
        if step.describe() == self.fail_at:
            return ExecutionResult.failed(self.exit_code, "dry run failure")
        return ExecutionResult.ok()
