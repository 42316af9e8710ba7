"""Graph state definition for the flywheel, using TypedDict."""

from __future__ import annotations

import operator
from typing import Annotated, TypedDict

from writeoff.schemas.flywheel import FlywheelIteration


class FlywheelState(TypedDict, total=False):
    """State for the refine/judge loop graph.

    Flows: evaluate → decide → (refine → evaluate | END)
    """

    # ----- Current candidate -----
    candidate_text: str
    iteration_index: int  # 1-based index of the candidate being evaluated

    # ----- Best-seen tracking (written only by the decide node) -----
    best_score: float
    best_iteration_index: int
    stale_count: int  # consecutive iterations without improvement

    # ----- Latest evaluation, handed from evaluate to decide/refine -----
    last_score: float

    # ----- Stop decision -----
    stop_reason: str | None

    # ----- Iteration log (append-only) -----
    iterations: Annotated[list[FlywheelIteration], operator.add]
