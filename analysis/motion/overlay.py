from __future__ import annotations

from typing import Optional, Sequence

import cv2
import numpy as np

from .model import MotionBox
from .roi import RegionOfInterest

ROI_COLOR_BGR = (129, 185, 16)
BOX_COLOR_BGR = (68, 68, 239)


def draw_overlay(
    img: np.ndarray,
    boxes: Sequence[MotionBox],
    roi: Optional[RegionOfInterest] = None,
) -> np.ndarray:
    """Return a BGR copy of `img` with the ROI outline and motion boxes drawn on it."""
    arr = np.asarray(img)
    if arr.ndim == 2 or (arr.ndim == 3 and arr.shape[2] == 1):
        out = cv2.cvtColor(arr, cv2.COLOR_GRAY2BGR)
    elif arr.ndim == 3 and arr.shape[2] == 4:
        out = cv2.cvtColor(arr, cv2.COLOR_BGRA2BGR)
    else:
        out = arr.copy()

    if roi is not None:
        r = roi.clamped(out.shape[1], out.shape[0])
        cv2.rectangle(out, (r.x, r.y), (r.x + r.width - 1, r.y + r.height - 1), ROI_COLOR_BGR, 2)
    for b in boxes:
        cv2.rectangle(out, (b.x, b.y), (b.x + b.width - 1, b.y + b.height - 1), BOX_COLOR_BGR, 3)
    return out
