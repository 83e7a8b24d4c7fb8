"""
Ledger exception hierarchy for Green Minting.

Every failure raised by the token ledger, the authorization registry and the
vesting lock is a subclass of LedgerError so callers can distinguish the
exact failure kind (a relayer retrying a not-yet-valid authorization versus
one that can never succeed again) while still being able to catch everything
at a single point.

All errors are raised before any state is mutated.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether resubmitting the same call later can succeed
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Construction Errors ====================


class ConstructionError(LedgerError):
    """Raised when a ledger or lock is constructed with invalid parameters.

    Examples: mismatched holder/balance lengths, zero stage duration,
    schedule entries outside [0, 10000].
    """
    pass


# ==================== Balance Errors ====================


class InsufficientBalanceError(LedgerError):
    """Raised when an account lacks sufficient balance for a debit."""
    pass


class InsufficientAllowanceError(LedgerError):
    """Raised when a spender's allowance does not cover a delegated transfer."""
    pass


class InvalidAddressError(LedgerError):
    """Raised for zero or malformed account addresses."""
    pass


class InvalidAmountError(LedgerError):
    """Raised when an amount is negative or exceeds uint256."""
    pass


# ==================== Authorization Errors ====================


class AuthorizationError(LedgerError):
    """Raised when a signed transfer/receive/cancel authorization is rejected."""
    pass


class ExpiredError(AuthorizationError):
    """Authorization's valid_before has passed; it can never succeed."""
    pass


class NotYetValidError(AuthorizationError):
    """Authorization's valid_after has not passed yet; retry later."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class SignatureInvalidError(AuthorizationError):
    """Signature is malformed or does not recover to the claimed signer."""
    pass


class NonceReusedError(AuthorizationError):
    """Nonce was already used by this signer."""
    pass


class NonceCancelledError(AuthorizationError):
    """Nonce was cancelled by this signer."""
    pass


class InvalidNonceError(AuthorizationError):
    """Nonce is not a 32-byte value."""
    pass


class CallerMismatchError(AuthorizationError):
    """receive_with_authorization submitted by someone other than the payee."""
    pass


# ==================== Vesting Errors ====================


class FundingStateError(LedgerError):
    """Raised when the vesting lock's funding state forbids the call."""
    pass


class AlreadyFundedError(FundingStateError):
    """lock_funds was already executed; funding is single-use."""
    pass


class ClaimError(LedgerError):
    """Raised when a vesting claim cannot be executed."""
    pass


class NothingAvailableError(ClaimError):
    """No vested tokens are claimable at the current stage."""
    pass


# ==================== Access Errors ====================


class AccessError(LedgerError):
    """Raised when the caller is not permitted to invoke an operation."""
    pass


class CallerNotBeneficiaryError(AccessError):
    """Only the vesting beneficiary may claim."""
    pass


class CallerNotFundingControllerError(AccessError):
    """Only the funding controller may fund the lock."""
    pass
