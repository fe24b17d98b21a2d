"""
Track-to-detection association.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from common.exceptions import InvalidInputError
from common.types import BoundingBox
from tracking import config
from tracking.geometry import iou_matrix


@dataclass
class AssignmentResult:
    """Accepted (track, detection) index pairs plus everything left over."""
    matches: List[Tuple[int, int]] = field(default_factory=list)
    unmatched_tracks: List[int] = field(default_factory=list)
    unmatched_detections: List[int] = field(default_factory=list)


def _tlbr(item) -> Sequence[float]:
    if isinstance(item, BoundingBox):
        return item.tlbr
    if hasattr(item, "tlbr"):
        return item.tlbr
    return item


def iou_distance(atracks: Sequence, btracks: Sequence) -> np.ndarray:
    """Cost = 1 - IoU for tracks, boxes or raw tlbr arrays."""
    atlbrs = [_tlbr(a) for a in atracks]
    btlbrs = [_tlbr(b) for b in btracks]
    return 1.0 - iou_matrix(atlbrs, btlbrs)


def fuse_score(cost_matrix: np.ndarray, scores: Sequence[float]) -> np.ndarray:
    """Fold detection confidence into IoU cost: 1 - IoU * confidence."""
    if cost_matrix.size == 0:
        return cost_matrix
    iou_sim = 1.0 - cost_matrix
    det_scores = np.asarray(scores, dtype=float)[None, :]
    return 1.0 - iou_sim * det_scores


def linear_assignment(cost_matrix: np.ndarray, thresh: float, method: str = config.ASSIGNMENT_METHOD) -> AssignmentResult:
    """
    Match rows (tracks) to columns (detections).

    A pair is accepted only when its cost is strictly below `thresh`. Matches
    are returned ordered by cost, then track index.
    """
    cost_matrix = np.asarray(cost_matrix, dtype=float)
    if cost_matrix.ndim != 2:
        raise InvalidInputError(f"Cost matrix must be 2-D, got shape {cost_matrix.shape}")
    n_rows, n_cols = cost_matrix.shape
    if n_rows == 0 or n_cols == 0:
        return AssignmentResult(
            unmatched_tracks=list(range(n_rows)),
            unmatched_detections=list(range(n_cols)),
        )

    if method == "hungarian":
        matches = _hungarian(cost_matrix, thresh)
    elif method == "greedy":
        matches = _greedy(cost_matrix, thresh)
    else:
        raise InvalidInputError(f"Unknown assignment method: {method!r}")

    matches.sort(key=lambda rc: (cost_matrix[rc[0], rc[1]], rc[0]))
    matched_rows = {r for r, _ in matches}
    matched_cols = {c for _, c in matches}
    return AssignmentResult(
        matches=matches,
        unmatched_tracks=[r for r in range(n_rows) if r not in matched_rows],
        unmatched_detections=[c for c in range(n_cols) if c not in matched_cols],
    )


def _hungarian(cost_matrix: np.ndarray, thresh: float) -> List[Tuple[int, int]]:
    gated = np.where(cost_matrix < thresh, cost_matrix, config.INFEASIBLE_COST)
    gated = gated + np.arange(cost_matrix.shape[0], dtype=float)[:, None] * config.TIE_BREAK_EPS
    rows, cols = linear_sum_assignment(gated)
    return [(int(r), int(c)) for r, c in zip(rows, cols) if cost_matrix[r, c] < thresh]


def _greedy(cost_matrix: np.ndarray, thresh: float) -> List[Tuple[int, int]]:
    rows, cols = np.nonzero(cost_matrix < thresh)
    candidates = sorted(zip(cost_matrix[rows, cols], rows, cols))
    used_rows: set[int] = set()
    used_cols: set[int] = set()
    matches: List[Tuple[int, int]] = []
    for _, r, c in candidates:
        if r in used_rows or c in used_cols:
            continue
        used_rows.add(int(r))
        used_cols.add(int(c))
        matches.append((int(r), int(c)))
    return matches
