"""
Decision Module
===============

- service: DecisionService (idempotent decision flow, stop command)
"""

from .service import DecisionOutcome, DecisionService, StopOutcome

__all__ = ["DecisionOutcome", "DecisionService", "StopOutcome"]
