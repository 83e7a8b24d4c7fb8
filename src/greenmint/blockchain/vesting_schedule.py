from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from greenmint.core.config import BASIS_POINTS
from greenmint.core.ledger_exceptions import ConstructionError

logger = logging.getLogger("greenmint.blockchain.vesting_schedule")


@dataclass(frozen=True)
class VestingSchedule:
    """
    Staged release schedule.

    ``percents`` are per-stage basis points (10000 = 100%). Stage ``i`` covers
    ``[start + i * stage_duration, start + (i + 1) * stage_duration)``. Once
    time is past the last stage everything is released, whether or not the
    percentages add up to 10000.
    """

    percents: tuple[int, ...]
    stage_duration: int
    start_timestamp: int

    @classmethod
    def create(cls, percents: Sequence[int], stage_duration: int, start_timestamp: int) -> "VestingSchedule":
        """
        Validates and builds a schedule.
        """
        if not isinstance(stage_duration, int) or stage_duration <= 0:
            raise ConstructionError("Stage duration must be a positive integer number of seconds.")
        if not isinstance(start_timestamp, int) or start_timestamp < 0:
            raise ConstructionError("Start timestamp must be a non-negative integer.")
        if len(percents) == 0:
            raise ConstructionError("Vesting schedule must have at least one stage.")
        for pct in percents:
            if not isinstance(pct, int) or not 0 <= pct <= BASIS_POINTS:
                raise ConstructionError(f"Schedule entries must be integers in [0, {BASIS_POINTS}], got {pct!r}.")
        if sum(percents) > BASIS_POINTS:
            logger.warning(
                "Vesting schedule sums to %d basis points; release is capped at %d",
                sum(percents),
                BASIS_POINTS,
            )
        return cls(tuple(percents), stage_duration, start_timestamp)

    @property
    def last_index(self) -> int:
        return len(self.percents) - 1

    def stage_at(self, now: int) -> int | None:
        """Stage index reached at ``now``, or None before the start."""
        if now < self.start_timestamp:
            return None
        return (now - self.start_timestamp) // self.stage_duration

    def cumulative_basis_points(self, now: int) -> int:
        """
        Basis points released up to and including the current stage.
        """
        stage = self.stage_at(now)
        if stage is None:
            return 0
        if stage > self.last_index:
            return BASIS_POINTS
        return min(sum(self.percents[: stage + 1]), BASIS_POINTS)

    def vested_amount(self, total: int, now: int) -> int:
        """Total released at ``now``, floored."""
        return total * self.cumulative_basis_points(now) // BASIS_POINTS

    def unlock_timestamps(self) -> list[int]:
        """Start of every scheduled stage, plus the point where any remainder unlocks."""
        return [
            self.start_timestamp + i * self.stage_duration
            for i in range(len(self.percents) + 1)
        ]

    def release_plan(self, total: int) -> list[dict]:
        """
        Per-stage unlock times and cumulative releasable amounts for ``total``.

        The final entry is the remainder stage where anything the percentages
        left unassigned becomes claimable.
        """
        plan = []
        unlocks = self.unlock_timestamps()
        for index, unlock_at in enumerate(unlocks):
            is_remainder = index == len(unlocks) - 1
            plan.append(
                {
                    "stage": index,
                    "unlocks_at": unlock_at,
                    "basis_points": (
                        BASIS_POINTS - min(sum(self.percents), BASIS_POINTS)
                        if is_remainder
                        else self.percents[index]
                    ),
                    "cumulative_amount": self.vested_amount(total, unlock_at),
                    "remainder": is_remainder,
                }
            )
        return plan
