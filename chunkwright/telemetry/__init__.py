"""Telemetry and observability helpers.

This package emits deterministic run events for CLI-observable auditing.
"""

from .logger import RunLogger

__all__ = ["RunLogger"]
