# analysis/motion/utils/motion_utils.py
from __future__ import annotations

from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..model import MotionBox
from ..roi import RegionOfInterest

GAUSSIAN_KSIZE = (5, 5)
_CLOSE_KERNEL = np.ones((3, 3), np.uint8)


# --- Grayscale + noise suppression ---------------------------------------------
def smooth_gray(img: np.ndarray) -> np.ndarray:
    """
    Grayscale conversion followed by a 5x5 Gaussian pass.
    Accepts BGR, BGRA, single-channel (H,W,1) or plain (H,W) input.
    """
    arr = np.asarray(img)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 2:
        gray = arr
    elif arr.ndim == 3 and arr.shape[2] == 1:
        gray = arr[:, :, 0]
    elif arr.ndim == 3 and arr.shape[2] == 3:
        gray = cv2.cvtColor(arr, cv2.COLOR_BGR2GRAY)
    elif arr.ndim == 3 and arr.shape[2] == 4:
        gray = cv2.cvtColor(arr, cv2.COLOR_BGRA2GRAY)
    else:
        raise ValueError(f"unsupported frame shape: {arr.shape!r}")
    return cv2.GaussianBlur(gray, GAUSSIAN_KSIZE, 0)


# --- ROI cropping ----------------------------------------------------------------
def crop_to_roi(
    gray: np.ndarray, roi: Optional[RegionOfInterest]
) -> Tuple[np.ndarray, Tuple[int, int]]:
    """
    Return (view, (ox, oy)): the ROI view of `gray` and its origin.
    The ROI is clamped to the image first, so slicing never leaves bounds.
    """
    if roi is None:
        return gray, (0, 0)
    h, w = int(gray.shape[0]), int(gray.shape[1])
    r = roi.clamped(w, h)
    ys, xs = r.as_slices()
    return gray[ys, xs], (r.x, r.y)


# --- Binarize + morphological close --------------------------------------------
def binarize_diff(diff: np.ndarray, threshold: int) -> np.ndarray:
    # THRESH_BINARY keeps src > thresh; shift by one so diff >= threshold is foreground.
    _, mask = cv2.threshold(diff, int(threshold) - 1, 255, cv2.THRESH_BINARY)
    return mask


def close_mask(mask: np.ndarray) -> np.ndarray:
    """Dilate then erode once with a 3x3 all-ones element."""
    mask = cv2.dilate(mask, _CLOSE_KERNEL)
    return cv2.erode(mask, _CLOSE_KERNEL)


# --- Contour boxes ---------------------------------------------------------------
def motion_boxes_with_area(
    mask: np.ndarray, min_area: int = 2500
) -> List[Tuple[int, int, int, int, float]]:
    """
    Return list of (x, y, w, h, area) in MASK coords using external contours.
    Contours whose enclosed area is below `min_area` are dropped.
    """
    cnts, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    out: List[Tuple[int, int, int, int, float]] = []
    for c in cnts:
        a = float(cv2.contourArea(c))
        if a < float(min_area):
            continue
        x, y, w, h = cv2.boundingRect(c)
        out.append((int(x), int(y), int(w), int(h), a))
    return out


# --- Full frame-differencing step (pure) ------------------------------------------
def detect_motion_boxes(
    curr_gray: np.ndarray,
    prev_gray: np.ndarray,
    roi: Optional[RegionOfInterest],
    threshold: int,
    min_area: int,
) -> List[MotionBox]:
    """
    Compare two smoothed grayscale frames of the same size and return the
    moving regions in full-frame coordinates.
    """
    curr, (ox, oy) = crop_to_roi(curr_gray, roi)
    prev, _ = crop_to_roi(prev_gray, roi)
    diff = cv2.absdiff(np.ascontiguousarray(curr), np.ascontiguousarray(prev))
    mask = close_mask(binarize_diff(diff, threshold))
    return [
        MotionBox(x=x + ox, y=y + oy, width=w, height=h, area=a)
        for x, y, w, h, a in motion_boxes_with_area(mask, min_area)
    ]
