# SPDX-License-Identifier: GPL-3.0-or-later OR LicenseRef-Commercial
"""Amortized growth policy for the reader's backing storage."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class GrowthPolicy:
    """How the backing storage grows when more bytes must become resident.

    Storage starts at `initial_capacity` on the first reservation and is then
    multiplied by `factor`, or grown straight to the requested size when that
    is larger. Small streams keep a small footprint, large streams get
    amortized O(1) appends.
    """

    initial_capacity: int = 16
    factor: float = 2.0

    def __post_init__(self) -> None:
        if self.initial_capacity < 1:
            raise ValueError("initial_capacity must be at least 1")
        if self.factor <= 1:
            raise ValueError("growth factor must be greater than 1")

    def next_capacity(self, current: int, target: int) -> int:
        """Return the capacity to reserve so that `target` bytes fit."""
        if target <= current:
            return current
        grown = math.ceil(current * self.factor)
        return max(target, grown, self.initial_capacity)
