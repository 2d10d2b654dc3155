"""Prompt templates for the cross-reference verification phase.

Modules:
    cross_reference_prompts: System and user prompts for grant cross-referencing
"""

from grantflow.config.prompts.cross_reference_prompts import (
    CROSS_REFERENCE_SYSTEM_PROMPT,
    CROSS_REFERENCE_USER_PROMPT,
)

__all__ = [
    "CROSS_REFERENCE_SYSTEM_PROMPT",
    "CROSS_REFERENCE_USER_PROMPT",
]
