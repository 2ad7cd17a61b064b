"""Local, preview and remote execution of project code."""

from .dispatcher import ExecutionDispatcher, ExecutionResult, ExecutionStrategy

__all__ = ["ExecutionDispatcher", "ExecutionResult", "ExecutionStrategy"]
