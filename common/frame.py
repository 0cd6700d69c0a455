from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class Frame:
    img: np.ndarray  # BGR (H,W,3) / BGRA (H,W,4) / gray (H,W), uint8
    pts_ms: float  # epoch ms (float)
    frame_id: int

    @property
    def width(self) -> int:
        return int(self.img.shape[1])

    @property
    def height(self) -> int:
        return int(self.img.shape[0])

    def is_valid(self) -> bool:
        """True when ``img`` is a non-empty 2-D or 3-D pixel array."""
        img: Optional[np.ndarray] = self.img
        if img is None or not hasattr(img, "ndim"):
            return False
        if img.ndim not in (2, 3) or img.size == 0:
            return False
        if img.ndim == 3 and img.shape[2] not in (1, 3, 4):
            return False
        return True
