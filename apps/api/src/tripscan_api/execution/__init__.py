"""Execution planning and concurrent provider fan-out."""

from .executor import PlanExecutor
from .planner import ExecutionPlanner

__all__ = ["ExecutionPlanner", "PlanExecutor"]
