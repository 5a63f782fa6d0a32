"""Executor adapters and the runner that feeds plans to them."""
from .base import StepExecutor
from .plan_runner import PlanRunner

__all__ = ["StepExecutor", "PlanRunner"]
