"""
Box encodings and overlap measures.

tlwh: top-left x, top-left y, width, height
tlbr: top-left x, top-left y, bottom-right x, bottom-right y
xyah: center x, center y, aspect ratio (width / height), height
"""
from __future__ import annotations

from typing import Sequence

import numpy as np

from tracking import config


def tlwh_to_xyah(tlwh: Sequence[float]) -> np.ndarray:
    ret = np.asarray(tlwh, dtype=float).copy()
    ret[:2] += ret[2:] / 2
    ret[2] /= max(ret[3], config.MIN_HEIGHT)
    return ret


def xyah_to_tlwh(xyah: Sequence[float]) -> np.ndarray:
    ret = np.asarray(xyah, dtype=float).copy()
    ret[2] *= ret[3]
    ret[:2] -= ret[2:] / 2
    return ret


def tlwh_to_tlbr(tlwh: Sequence[float]) -> np.ndarray:
    ret = np.asarray(tlwh, dtype=float).copy()
    ret[2:] += ret[:2]
    return ret


def tlbr_to_tlwh(tlbr: Sequence[float]) -> np.ndarray:
    ret = np.asarray(tlbr, dtype=float).copy()
    ret[2:] -= ret[:2]
    return ret


def iou(box_a: Sequence[float], box_b: Sequence[float]) -> float:
    """Intersection over union of two tlbr boxes. 0.0 when they do not overlap."""
    ax1, ay1, ax2, ay2 = box_a
    bx1, by1, bx2, by2 = box_b
    inter_w = max(0.0, min(ax2, bx2) - max(ax1, bx1))
    inter_h = max(0.0, min(ay2, by2) - max(ay1, by1))
    inter_area = inter_w * inter_h
    a_area = max(0.0, ax2 - ax1) * max(0.0, ay2 - ay1)
    b_area = max(0.0, bx2 - bx1) * max(0.0, by2 - by1)
    union = a_area + b_area - inter_area
    return inter_area / union if union > 0 else 0.0


def iou_matrix(atlbrs: Sequence[Sequence[float]], btlbrs: Sequence[Sequence[float]]) -> np.ndarray:
    """Pairwise IoU, shape (len(atlbrs), len(btlbrs))."""
    if len(atlbrs) == 0 or len(btlbrs) == 0:
        return np.zeros((len(atlbrs), len(btlbrs)), dtype=float)

    a = np.asarray(atlbrs, dtype=float)[:, None, :]
    b = np.asarray(btlbrs, dtype=float)[None, :, :]
    inter_w = np.clip(np.minimum(a[..., 2], b[..., 2]) - np.maximum(a[..., 0], b[..., 0]), 0.0, None)
    inter_h = np.clip(np.minimum(a[..., 3], b[..., 3]) - np.maximum(a[..., 1], b[..., 1]), 0.0, None)
    inter = inter_w * inter_h
    a_area = np.clip(a[..., 2] - a[..., 0], 0.0, None) * np.clip(a[..., 3] - a[..., 1], 0.0, None)
    b_area = np.clip(b[..., 2] - b[..., 0], 0.0, None) * np.clip(b[..., 3] - b[..., 1], 0.0, None)
    union = a_area + b_area - inter
    return np.divide(inter, union, out=np.zeros_like(inter), where=union > 0)
