"""
Settlement engine components.

Batch validation and the atomic settlement engine.
"""

from settlement.engine.validator import BatchValidator, LegPlan
from settlement.engine.settlement import SettlementEngine

__all__ = [
    "BatchValidator",
    "LegPlan",
    "SettlementEngine",
]
