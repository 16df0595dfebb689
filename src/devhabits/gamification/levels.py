"""Level computation from total XP."""

from __future__ import annotations

import math

XP_PER_COMPLETION = 10


def compute_level(total_xp: int) -> int:
    """Level = floor(sqrt(total_xp / 100)) + 1.

    0-99 XP is level 1, 100-399 level 2, 400-899 level 3, and so on.
    """
    return math.isqrt(max(total_xp, 0) // 100) + 1


def level_progress(total_xp: int) -> dict:
    """XP needed for the current and the next level boundary."""
    level = compute_level(total_xp)
    floor_xp = 100 * (level - 1) ** 2
    next_xp = 100 * level**2
    return {
        "level": level,
        "xp_into_level": total_xp - floor_xp,
        "xp_for_level": next_xp - floor_xp,
        "next_level": level + 1,
    }
