"""
Submission of plan steps to an executor, one after another.
"""
import logging
import threading
from typing import Callable, List, Optional, Tuple

from ..MODELS.errors import ExecutionError
from ..MODELS.plan import ExecutionResult, Plan, Step
from .base import StepExecutor

logger = logging.getLogger(__name__)


class PlanRunner:
    """
    Feeds a plan to an executor strictly in order.

    Step N+1 is only submitted after step N succeeded. The first failure
    stops submission and is raised as an ExecutionError holding the
    executor's result unchanged.
    """
    def __init__(self, executor: StepExecutor,
                 on_step: Optional[Callable[[Step, ExecutionResult], None]] = None):
        """
        Initializes the runner.

        :param executor: The adapter that performs the steps.
        :param on_step: Called after every finished step, failed ones included.
        """
        self.executor = executor
        self.on_step = on_step
        self._cancelled = threading.Event()

    def cancel(self):
        """
        Stops submitting steps. A step already handed to the executor finishes.
        Safe to call from another thread or a signal handler.
        """
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, plan: Plan) -> List[Tuple[Step, ExecutionResult]]:
        """
        Runs the plan.

        :param plan: The plan to run.
        :return: Every completed step with its result, in order. Shorter than
            the plan when the run was cancelled.
        :raises ExecutionError: On the first failed step.
        """
        completed = []
        for index, step in enumerate(plan.steps, start=1):
            if self.cancelled:
                logger.warning("Run cancelled, %d of %d steps not submitted",
                               len(plan) - index + 1, len(plan))
                break

            logger.info("[%d/%d] %s", index, len(plan), step.describe())
            result = self.executor.run_step(step)
            if self.on_step:
                self.on_step(step, result)
            if not result.success:
                raise ExecutionError(step, result)
            completed.append((step, result))
        return completed
