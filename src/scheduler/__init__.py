"""Recurring message scheduling: trigger compilation, job registry, reconciliation."""

from src.scheduler.compiler import ScheduleCompileError, TriggerSpec, compile_trigger
from src.scheduler.reconciler import Reconciler
from src.scheduler.registry import JobRegistry, RegisteredJob
from src.scheduler.runtime import TriggerRuntime

__all__ = [
    "JobRegistry",
    "Reconciler",
    "RegisteredJob",
    "ScheduleCompileError",
    "TriggerRuntime",
    "TriggerSpec",
    "compile_trigger",
]
