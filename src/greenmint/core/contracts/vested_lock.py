"""
VestedLock - staged release of a single pre-funded allocation.

The funding controller approves the lock on the TokenLedger and calls
lock_funds() exactly once; the lock pulls the fixed vested amount into its
own account. From then on the beneficiary claims the cumulative percentage
unlocked by each elapsed stage.

Claimable amounts depend only on the tracked deposit, the schedule and the
lock's own claimed counter, never on the lock's ledger balance, so tokens
sent to the lock by anyone else do not change what the beneficiary can claim.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Sequence

from greenmint.blockchain.vesting_schedule import VestingSchedule

from ..address import derive_contract_address, is_zero_address, normalize_address
from ..ledger_exceptions import (
    AlreadyFundedError,
    CallerNotBeneficiaryError,
    CallerNotFundingControllerError,
    ConstructionError,
    LedgerError,
    NothingAvailableError,
)
from .token_ledger import TokenLedger

logger = logging.getLogger(__name__)


class LockState(Enum):
    UNFUNDED = "unfunded"
    FUNDED = "funded"


@dataclass
class VestingEvent:
    """FundsLocked or VestingClaimed event."""

    event_type: str
    account: str
    amount: int
    claimed_total: int
    timestamp: int = field(default_factory=lambda: int(time.time()))


class VestedLock:
    """Single-beneficiary escrow releasing a deposit stage by stage."""

    def __init__(
        self,
        beneficiary: str,
        stage_duration: int,
        schedule: Sequence[int],
        start_timestamp: int,
        ledger: TokenLedger,
        vested_amount: int,
        funder: str,
        address: str | None = None,
        time_provider: Callable[[], int] | None = None,
    ) -> None:
        try:
            self.beneficiary = normalize_address(beneficiary, "beneficiary")
            self.funder = normalize_address(funder, "funder")
            self.address = (
                normalize_address(address, "lock address")
                if address
                else derive_contract_address(self.funder)
            )
        except LedgerError as exc:
            raise ConstructionError(f"Invalid lock parameters: {exc.message}") from exc
        if is_zero_address(self.beneficiary):
            raise ConstructionError("Beneficiary cannot be the zero address")
        if not isinstance(vested_amount, int) or vested_amount <= 0:
            raise ConstructionError("Vested amount must be a positive integer")

        self.schedule = VestingSchedule.create(schedule, stage_duration, start_timestamp)
        self.ledger = ledger
        self.vested_amount = vested_amount

        self.state = LockState.UNFUNDED
        self.total_deposited = 0
        self.claimed = 0
        self.events: list[VestingEvent] = []

        self._lock = threading.RLock()
        self._time_provider = time_provider or (lambda: int(time.time()))

        logger.info(
            "VestedLock created for %s",
            self.beneficiary,
            extra={
                "event": "vesting.created",
                "address": self.address,
                "stages": len(self.schedule.percents),
                "stage_duration": stage_duration,
                "start": start_timestamp,
                "vested_amount": vested_amount,
            },
        )

    def _current_time(self, current_time: int | None = None) -> int:
        timestamp = current_time if current_time is not None else self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    # ==================== Funding ====================

    def lock_funds(self, caller: str) -> int:
        """
        Pull the vested amount from the funder via the ledger allowance.

        Raises:
            AlreadyFundedError: funding already happened (never retryable)
            CallerNotFundingControllerError: caller is not the funder
            InsufficientAllowanceError / InsufficientBalanceError: from the ledger
        """
        with self._lock:
            if self.state is LockState.FUNDED:
                raise AlreadyFundedError(
                    "VestedLock is already funded",
                    details={"total_deposited": self.total_deposited},
                )
            caller_norm = normalize_address(caller, "caller")
            if caller_norm != self.funder:
                raise CallerNotFundingControllerError(
                    "Only the funding controller can lock funds",
                    details={"caller": caller_norm},
                )

            self.ledger.transfer_from(self.address, self.funder, self.address, self.vested_amount)

            self.total_deposited = self.vested_amount
            self.state = LockState.FUNDED
            self.events.append(
                VestingEvent("FundsLocked", self.funder, self.vested_amount, self.claimed, self._current_time())
            )
            logger.info(
                "Locked %d tokens for vesting",
                self.vested_amount,
                extra={"event": "vesting.funded", "address": self.address, "funder": self.funder[:10]},
            )
            return self.vested_amount

    # ==================== Claiming ====================

    def current_stage(self, current_time: int | None = None) -> int | None:
        """Stage index reached, or None before the start timestamp."""
        return self.schedule.stage_at(self._current_time(current_time))

    def available_vested_tokens(self, current_time: int | None = None) -> int:
        """
        Amount the beneficiary can claim right now. Read-only.
        """
        now = self._current_time(current_time)
        vested = self.schedule.vested_amount(self.total_deposited, now)
        return max(0, vested - self.claimed)

    def claim_vested_tokens(self, caller: str, current_time: int | None = None) -> int:
        """
        Transfer everything currently available to the beneficiary.

        Raises:
            CallerNotBeneficiaryError: caller is not the beneficiary
            NothingAvailableError: nothing unlocked beyond what was claimed
        """
        with self._lock:
            caller_norm = normalize_address(caller, "caller")
            if caller_norm != self.beneficiary:
                raise CallerNotBeneficiaryError(
                    "Only the beneficiary can claim vested tokens",
                    details={"caller": caller_norm},
                )

            now = self._current_time(current_time)
            available = self.available_vested_tokens(now)
            if available == 0:
                logger.warning(
                    "No vested tokens available for %s",
                    self.beneficiary,
                    extra={"event": "vesting.nothing_available", "stage": self.schedule.stage_at(now)},
                )
                raise NothingAvailableError(
                    "No vested tokens available to claim",
                    details={"claimed": self.claimed, "stage": self.schedule.stage_at(now)},
                )

            self.ledger.transfer(self.address, self.beneficiary, available)

            self.claimed += available
            self.events.append(
                VestingEvent("VestingClaimed", self.beneficiary, available, self.claimed, now)
            )
            logger.info(
                "Claimed %d vested tokens (total %d)",
                available,
                self.claimed,
                extra={"event": "vesting.claimed", "address": self.address, "stage": self.schedule.stage_at(now)},
            )
            return available

    # ==================== Reporting ====================

    def release_plan(self) -> List[Dict[str, Any]]:
        """
        Per-stage unlock times and cumulative releasable amounts, based on
        the deposit (or the configured vested amount before funding).
        """
        return self.schedule.release_plan(self.total_deposited or self.vested_amount)
