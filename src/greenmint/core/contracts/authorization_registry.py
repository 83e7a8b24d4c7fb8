"""
Authorization registry for gasless transfers (EIP-3009).

Tracks the state of every (authorizer, nonce) pair a signer has ever
consumed and verifies signed authorizations against the ledger's signing
domain. The state table is append-only: once a nonce is USED or CANCELLED
it stays that way, so a signed payload can never be replayed.

The registry never touches balances. TokenLedger asks it to verify, performs
its own balance checks, and only then asks it to record the nonce.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple, Union

from ..config import UINT256_MAX
from ..crypto_utils import EcdsaSignatureVerifier, SignatureLike, SignatureVerifier
from ..ledger_exceptions import (
    ExpiredError,
    InvalidAmountError,
    InvalidNonceError,
    NonceCancelledError,
    NonceReusedError,
    NotYetValidError,
    SignatureInvalidError,
)
from ..typed_signing import (
    CANCEL_AUTHORIZATION,
    RECEIVE_WITH_AUTHORIZATION,
    TRANSFER_WITH_AUTHORIZATION,
    TypedDataDomain,
    cancel_message,
    hash_domain,
    transfer_message,
    typed_data_digest,
)

logger = logging.getLogger(__name__)

NonceLike = Union[bytes, str]


class AuthorizationState(Enum):
    UNUSED = "unused"
    USED = "used"
    CANCELLED = "cancelled"


def normalize_nonce(nonce: NonceLike) -> bytes:
    """
    Coerce a nonce to 32 raw bytes.

    Raises:
        InvalidNonceError: If the nonce is not exactly 32 bytes
    """
    if isinstance(nonce, str):
        try:
            nonce = bytes.fromhex(nonce[2:] if nonce.startswith("0x") else nonce)
        except ValueError as exc:
            raise InvalidNonceError(f"Nonce is not valid hex: {exc}") from exc
    if not isinstance(nonce, (bytes, bytearray)) or len(nonce) != 32:
        raise InvalidNonceError("Nonce must be exactly 32 bytes")
    return bytes(nonce)


def _validate_uint(value: int, name: str) -> None:
    if not isinstance(value, int) or value < 0 or value > UINT256_MAX:
        raise InvalidAmountError(f"{name} must be a uint256, got {value!r}")


@dataclass
class AuthorizationRegistry:
    """
    Nonce state table plus signature verification for one signing domain.

    Usage:
        registry = AuthorizationRegistry(domain)
        registry.verify_transfer(TRANSFER_WITH_AUTHORIZATION, ..., now=now)
        # ... caller checks balances ...
        registry.mark_used(from_addr, nonce)
    """

    domain: TypedDataDomain
    verifier: SignatureVerifier = field(default_factory=EcdsaSignatureVerifier)
    states: Dict[Tuple[str, bytes], AuthorizationState] = field(default_factory=dict)
    domain_separator: bytes = field(init=False)

    def __post_init__(self) -> None:
        self.domain_separator = hash_domain(self.domain)

    def authorization_state(self, authorizer: str, nonce: bytes) -> AuthorizationState:
        return self.states.get((authorizer, nonce), AuthorizationState.UNUSED)

    # ==================== Verification ====================

    def verify_transfer(
        self,
        primary_type: str,
        from_addr: str,
        to_addr: str,
        value: int,
        valid_after: int,
        valid_before: int,
        nonce: bytes,
        signature: SignatureLike,
        now: int,
    ) -> None:
        """
        Verify a transfer or receive authorization without mutating state.

        Addresses must already be normalized and the nonce already 32 bytes.

        Raises:
            NotYetValidError: now <= valid_after
            ExpiredError: now >= valid_before
            NonceReusedError / NonceCancelledError: nonce not UNUSED
            SignatureInvalidError: signature does not recover to from_addr
        """
        if primary_type not in (TRANSFER_WITH_AUTHORIZATION, RECEIVE_WITH_AUTHORIZATION):
            raise ValueError(f"Not a transfer authorization type: {primary_type}")
        _validate_uint(valid_after, "valid_after")
        _validate_uint(valid_before, "valid_before")

        if now <= valid_after:
            self._reject(primary_type, from_addr, nonce, "not_yet_valid")
            raise NotYetValidError(
                "Authorization is not yet valid",
                details={"valid_after": valid_after, "now": now},
            )
        if now >= valid_before:
            self._reject(primary_type, from_addr, nonce, "expired")
            raise ExpiredError(
                "Authorization is expired",
                details={"valid_before": valid_before, "now": now},
            )

        self._require_unused(primary_type, from_addr, nonce)

        message = transfer_message(from_addr, to_addr, value, valid_after, valid_before, nonce)
        digest = typed_data_digest(self.domain_separator, primary_type, message)
        self._require_signer(primary_type, digest, signature, from_addr, nonce)

    def verify_cancel(self, authorizer: str, nonce: bytes, signature: SignatureLike) -> None:
        """
        Verify a cancel authorization without mutating state.

        Raises:
            NonceReusedError / NonceCancelledError: nonce not UNUSED
            SignatureInvalidError: signature does not recover to authorizer
        """
        self._require_unused(CANCEL_AUTHORIZATION, authorizer, nonce)
        digest = typed_data_digest(
            self.domain_separator, CANCEL_AUTHORIZATION, cancel_message(authorizer, nonce)
        )
        self._require_signer(CANCEL_AUTHORIZATION, digest, signature, authorizer, nonce)

    # ==================== State Transitions ====================

    def mark_used(self, authorizer: str, nonce: bytes) -> None:
        self._transition(authorizer, nonce, AuthorizationState.USED)

    def mark_cancelled(self, authorizer: str, nonce: bytes) -> None:
        self._transition(authorizer, nonce, AuthorizationState.CANCELLED)

    def _transition(self, authorizer: str, nonce: bytes, new_state: AuthorizationState) -> None:
        key = (authorizer, nonce)
        current = self.states.get(key, AuthorizationState.UNUSED)
        if current is not AuthorizationState.UNUSED:
            # Callers verify first; reaching here means a caller skipped verification.
            raise RuntimeError(f"Nonce {nonce.hex()} for {authorizer} is already {current.value}")
        self.states[key] = new_state

    # ==================== Helpers ====================

    def _require_unused(self, primary_type: str, authorizer: str, nonce: bytes) -> None:
        state = self.authorization_state(authorizer, nonce)
        if state is AuthorizationState.USED:
            self._reject(primary_type, authorizer, nonce, "nonce_used")
            raise NonceReusedError(
                "Authorization nonce already used",
                details={"authorizer": authorizer, "nonce": "0x" + nonce.hex()},
            )
        if state is AuthorizationState.CANCELLED:
            self._reject(primary_type, authorizer, nonce, "nonce_cancelled")
            raise NonceCancelledError(
                "Authorization nonce was cancelled",
                details={"authorizer": authorizer, "nonce": "0x" + nonce.hex()},
            )

    def _require_signer(
        self,
        primary_type: str,
        digest: bytes,
        signature: SignatureLike,
        expected: str,
        nonce: bytes,
    ) -> None:
        try:
            signer = self.verifier.recover(digest, signature)
        except SignatureInvalidError:
            self._reject(primary_type, expected, nonce, "malformed_signature")
            raise
        if signer.lower() != expected:
            self._reject(primary_type, expected, nonce, "signer_mismatch")
            raise SignatureInvalidError(
                "Invalid signature",
                details={"expected": expected, "recovered": signer},
            )

    def _reject(self, primary_type: str, authorizer: str, nonce: bytes, reason: str) -> None:
        logger.warning(
            "%s rejected: %s",
            primary_type,
            reason,
            extra={
                "event": "authorization.rejected",
                "type": primary_type,
                "authorizer": authorizer[:10],
                "nonce": nonce.hex()[:16],
                "reason": reason,
            },
        )
