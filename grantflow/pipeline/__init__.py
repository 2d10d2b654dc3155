"""Batch orchestration for scheduled grant re-verification.

- BatchOrchestrator: sequential, budgeted verification over a candidate set
- VerificationBudget: explicit wall-clock budget
- build_components: wires the stack from settings
"""

from grantflow.pipeline.batch_orchestrator import (
    BatchOrchestrator,
    VerificationBudget,
    VerificationComponents,
    build_components,
    build_store,
)

__all__ = [
    "BatchOrchestrator",
    "VerificationBudget",
    "VerificationComponents",
    "build_components",
    "build_store",
]
