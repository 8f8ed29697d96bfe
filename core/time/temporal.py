"""
POS Core Time - Validity Windows
==================================
Pure interval logic for offer validity. All functions take explicit
datetimes; nothing here reads a clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


# ══════════════════════════════════════════════════════════════
# VALIDITY WINDOW - closed interval, either side may be open
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ValidityWindow:
    """
    Closed interval [valid_from, valid_to].

    A missing bound is unbounded on that side, so an empty window is
    valid forever.
    """

    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None

    def __post_init__(self) -> None:
        for bound in (self.valid_from, self.valid_to):
            if bound is not None and bound.tzinfo is None:
                raise ValueError("ValidityWindow requires timezone-aware datetimes.")
        if (
            self.valid_from is not None
            and self.valid_to is not None
            and self.valid_from > self.valid_to
        ):
            raise ValueError(
                f"valid_from ({self.valid_from}) must be <= "
                f"valid_to ({self.valid_to})."
            )

    def is_upcoming(self, now: datetime) -> bool:
        return self.valid_from is not None and now < self.valid_from

    def is_expired(self, now: datetime) -> bool:
        return self.valid_to is not None and now > self.valid_to

    def contains(self, now: datetime) -> bool:
        return not self.is_upcoming(now) and not self.is_expired(now)
