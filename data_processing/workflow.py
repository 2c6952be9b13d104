# referral_tracker/data_processing/workflow.py
# Canonical workflow stage ordering and regression detection.

import logging
from typing import Optional, Sequence

from config import settings

logger = logging.getLogger(__name__)


class InvalidStageError(ValueError):
    """Raised when a stage name is not part of the configured workflow."""


def stage_index(stage: Optional[str], stages: Optional[Sequence[str]] = None) -> int:
    """Position of `stage` in the workflow, or -1 when it is not configured."""
    ordered = list(stages if stages is not None else settings.WORKFLOW_STAGES)
    if stage is None or stage not in ordered:
        return -1
    return ordered.index(stage)


def is_backward(current_stage: Optional[str], new_stage: Optional[str],
                stages: Optional[Sequence[str]] = None) -> bool:
    """
    True iff moving from `current_stage` to `new_stage` goes to a strictly
    earlier position in the canonical order. Unknown stages never count as
    a regression.
    """
    current_idx = stage_index(current_stage, stages)
    new_idx = stage_index(new_stage, stages)
    if current_idx < 0 or new_idx < 0:
        return False
    return new_idx < current_idx


def validate_stage(stage: Optional[str], stages: Optional[Sequence[str]] = None) -> str:
    if stage_index(stage, stages) < 0:
        raise InvalidStageError(f"'{stage}' is not a configured workflow stage.")
    return stage
