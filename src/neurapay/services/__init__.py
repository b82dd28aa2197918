# src/neurapay/services/__init__.py
"""Business logic services for the NeuraPay application."""

from .access_checker import AccessCheckerService
from .access_tracker import AccessTrackerService
from .ai_relay import AIRelayService
from .chain import ChainReader, ChainWriter
from .reconciliation import AccessOrchestrator
from .tracker_client import AccessTrackerClient

__all__ = [
    "AccessCheckerService",
    "AccessTrackerService",
    "AIRelayService",
    "ChainReader",
    "ChainWriter",
    "AccessOrchestrator",
    "AccessTrackerClient",
]
