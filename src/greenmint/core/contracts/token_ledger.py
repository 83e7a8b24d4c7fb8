"""
Green Minting Token ledger.

Fungible balance ledger with the ERC20 surface (transfer, approve,
transferFrom) extended with EIP-3009 gasless transfers:
- transferWithAuthorization: any relayer submits a holder's signed transfer
- receiveWithAuthorization: only the payee may submit (front-running safe)
- cancelAuthorization: the holder burns an unused nonce

Supply is fixed at construction: each initial holder receives its balance
and the vesting reserve is minted to the deployer, who later funds the
VestedLock with it.

Every mutating call holds the ledger lock and checks all preconditions
before touching balances, allowances or the nonce table, so a failed call
leaves state exactly as it was.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .. import config
from ..address import ZERO_ADDRESS, derive_contract_address, is_zero_address, normalize_address
from ..crypto_utils import EcdsaSignatureVerifier, SignatureLike, SignatureVerifier
from ..ledger_exceptions import (
    CallerMismatchError,
    ConstructionError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAddressError,
    InvalidAmountError,
    LedgerError,
)
from ..typed_signing import (
    RECEIVE_WITH_AUTHORIZATION,
    TRANSFER_WITH_AUTHORIZATION,
    TypedDataDomain,
)
from .authorization_registry import (
    AuthorizationRegistry,
    AuthorizationState,
    NonceLike,
    normalize_nonce,
)

logger = logging.getLogger(__name__)


@dataclass
class TokenEvent:
    """Transfer or Approval event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int
    timestamp: int = field(default_factory=lambda: int(time.time()))


@dataclass
class AuthorizationEvent:
    """AuthorizationUsed or AuthorizationCanceled event."""

    event_type: str
    authorizer: str
    nonce: str
    timestamp: int = field(default_factory=lambda: int(time.time()))


class TokenLedger:
    """
    Fixed-supply token ledger with signed-authorization transfers.

    All balances and allowances are held in memory, keyed by lowercase
    address. Callers pass the submitting account explicitly (msg.sender).
    """

    UINT256_MAX: int = config.UINT256_MAX

    def __init__(
        self,
        initial_holders: Sequence[str],
        initial_balances: Sequence[int],
        vesting_reserve_amount: int,
        deployer: str,
        name: str = config.TOKEN_NAME,
        symbol: str = config.TOKEN_SYMBOL,
        version: str = config.TOKEN_VERSION,
        decimals: int = config.TOKEN_DECIMALS,
        chain_id: int | None = None,
        address: str | None = None,
        verifier: SignatureVerifier | None = None,
        time_provider: Callable[[], int] | None = None,
    ) -> None:
        if len(initial_holders) != len(initial_balances):
            raise ConstructionError(
                "Initial holders and balances must have equal length "
                f"({len(initial_holders)} != {len(initial_balances)})"
            )

        try:
            self.deployer = self._checked_address(deployer, "deployer")
            holders = [self._checked_address(h, "initial holder") for h in initial_holders]
            for amount in list(initial_balances) + [vesting_reserve_amount]:
                self._validate_amount(amount)
            self.address = (
                normalize_address(address, "ledger address")
                if address
                else derive_contract_address(self.deployer)
            )
        except LedgerError as exc:
            raise ConstructionError(f"Invalid ledger parameters: {exc.message}") from exc

        supply = sum(initial_balances) + vesting_reserve_amount
        if supply > self.UINT256_MAX:
            raise ConstructionError("Total supply exceeds uint256")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.version = version
        self.chain_id = chain_id if chain_id is not None else config.resolve_chain_id()

        self.total_supply = 0
        self.balances: dict[str, int] = {}
        self.allowances: dict[str, dict[str, int]] = {}
        self.events: list[TokenEvent | AuthorizationEvent] = []

        self.domain = TypedDataDomain(
            name=name,
            version=version,
            chain_id=self.chain_id,
            verifying_contract=self.address,
        )
        self.authorizations = AuthorizationRegistry(
            domain=self.domain,
            verifier=verifier or EcdsaSignatureVerifier(),
        )

        self._lock = threading.RLock()
        self._time_provider = time_provider or (lambda: int(time.time()))

        for holder, amount in zip(holders, initial_balances):
            self._mint(holder, amount)
        self._mint(self.deployer, vesting_reserve_amount)

        logger.info(
            "Token ledger created",
            extra={
                "event": "ledger.created",
                "address": self.address,
                "symbol": self.symbol,
                "chain_id": self.chain_id,
                "holders": len(holders),
                "total_supply": self.total_supply,
            },
        )

    # ==================== View Functions ====================

    @property
    def domain_separator(self) -> bytes:
        return self.authorizations.domain_separator

    def balance_of(self, account: str) -> int:
        return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)
        return self.allowances.get(owner_norm, {}).get(spender_norm, 0)

    def authorization_state(self, authorizer: str, nonce: NonceLike) -> AuthorizationState:
        """State of an authorizer's nonce: UNUSED, USED or CANCELLED."""
        return self.authorizations.authorization_state(
            self._normalize(authorizer), normalize_nonce(nonce)
        )

    def get_events(self, event_type: str | None = None) -> list[TokenEvent | AuthorizationEvent]:
        if event_type is None:
            return list(self.events)
        return [e for e in self.events if e.event_type == event_type]

    # ==================== ERC20 Transfers ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Raises:
            InvalidAddressError: recipient is zero or malformed
            InsufficientBalanceError: sender balance below amount
        """
        with self._lock:
            sender_norm = self._normalize(sender)
            recipient_norm = self._normalize(recipient)
            self._validate_address(recipient_norm, "recipient")
            self._validate_amount(amount)
            self._require_balance(sender_norm, amount)

            self._move(sender_norm, recipient_norm, amount)
            return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Set spender's allowance over owner's tokens."""
        with self._lock:
            owner_norm = self._normalize(owner)
            spender_norm = self._normalize(spender)
            self._validate_address(spender_norm, "spender")
            self._validate_amount(amount)

            self.allowances.setdefault(owner_norm, {})[spender_norm] = amount
            self._emit(TokenEvent("Approval", owner_norm, spender_norm, amount, self._now()))
            return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """
        Transfer tokens using an allowance.

        Raises:
            InsufficientAllowanceError: allowance below amount
            InsufficientBalanceError: owner balance below amount
        """
        with self._lock:
            spender_norm = self._normalize(spender)
            from_norm = self._normalize(from_addr)
            to_norm = self._normalize(to_addr)
            self._validate_address(to_norm, "recipient")
            self._validate_amount(amount)

            current_allowance = self.allowance(from_norm, spender_norm)
            if current_allowance < amount:
                raise InsufficientAllowanceError(
                    f"Insufficient allowance ({current_allowance} < {amount})",
                    details={"owner": from_norm, "spender": spender_norm},
                )
            self._require_balance(from_norm, amount)

            if current_allowance != self.UINT256_MAX:
                self.allowances[from_norm][spender_norm] = current_allowance - amount
            self._move(from_norm, to_norm, amount)
            return True

    def increase_allowance(self, owner: str, spender: str, added_value: int) -> bool:
        with self._lock:
            self._validate_amount(added_value)
            new_allowance = min(self.allowance(owner, spender) + added_value, self.UINT256_MAX)
            return self.approve(owner, spender, new_allowance)

    def decrease_allowance(self, owner: str, spender: str, subtracted_value: int) -> bool:
        with self._lock:
            self._validate_amount(subtracted_value)
            current = self.allowance(owner, spender)
            if subtracted_value > current:
                raise InsufficientAllowanceError("Decreased allowance below zero")
            return self.approve(owner, spender, current - subtracted_value)

    # ==================== EIP-3009 ====================

    def transfer_with_authorization(
        self,
        caller: str,
        from_addr: str,
        to_addr: str,
        value: int,
        valid_after: int,
        valid_before: int,
        nonce: NonceLike,
        signature: SignatureLike,
        current_time: int | None = None,
    ) -> bool:
        """
        Execute a transfer signed off-chain by from_addr. Any caller may submit.

        Raises:
            AuthorizationError: window, nonce or signature check failed
            InsufficientBalanceError: from_addr balance below value
        """
        return self._execute_authorization(
            TRANSFER_WITH_AUTHORIZATION,
            caller, from_addr, to_addr, value, valid_after, valid_before,
            nonce, signature, current_time,
        )

    def receive_with_authorization(
        self,
        caller: str,
        from_addr: str,
        to_addr: str,
        value: int,
        valid_after: int,
        valid_before: int,
        nonce: NonceLike,
        signature: SignatureLike,
        current_time: int | None = None,
    ) -> bool:
        """
        Like transfer_with_authorization but the caller must be the payee,
        so a watcher of pending submissions cannot redirect or front-run it.

        Raises:
            CallerMismatchError: caller is not to_addr
        """
        return self._execute_authorization(
            RECEIVE_WITH_AUTHORIZATION,
            caller, from_addr, to_addr, value, valid_after, valid_before,
            nonce, signature, current_time,
        )

    def cancel_authorization(
        self,
        caller: str,
        authorizer: str,
        nonce: NonceLike,
        signature: SignatureLike,
    ) -> bool:
        """
        Cancel an unused nonce. Irreversible: any authorization signed with
        that nonce can never execute afterwards.
        """
        with self._lock:
            authorizer_norm = self._normalize(authorizer)
            nonce_bytes = normalize_nonce(nonce)

            self.authorizations.verify_cancel(authorizer_norm, nonce_bytes, signature)

            self.authorizations.mark_cancelled(authorizer_norm, nonce_bytes)
            self._emit(
                AuthorizationEvent("AuthorizationCanceled", authorizer_norm, "0x" + nonce_bytes.hex(), self._now())
            )

            logger.info(
                "Authorization cancelled",
                extra={
                    "event": "authorization.cancelled",
                    "authorizer": authorizer_norm[:10],
                    "caller": self._normalize(caller)[:10],
                    "nonce": nonce_bytes.hex()[:16],
                },
            )
            return True

    def _execute_authorization(
        self,
        primary_type: str,
        caller: str,
        from_addr: str,
        to_addr: str,
        value: int,
        valid_after: int,
        valid_before: int,
        nonce: NonceLike,
        signature: SignatureLike,
        current_time: int | None,
    ) -> bool:
        with self._lock:
            now = self._current_time(current_time)
            caller_norm = self._normalize(caller)
            from_norm = self._normalize(from_addr)
            to_norm = self._normalize(to_addr)
            nonce_bytes = normalize_nonce(nonce)
            self._validate_amount(value)

            if primary_type == RECEIVE_WITH_AUTHORIZATION and caller_norm != to_norm:
                raise CallerMismatchError(
                    "Caller must be the payee",
                    details={"caller": caller_norm, "to": to_norm},
                )

            self.authorizations.verify_transfer(
                primary_type, from_norm, to_norm, value,
                valid_after, valid_before, nonce_bytes, signature, now,
            )
            self._validate_address(to_norm, "recipient")
            self._require_balance(from_norm, value)

            self.authorizations.mark_used(from_norm, nonce_bytes)
            self._emit(AuthorizationEvent("AuthorizationUsed", from_norm, "0x" + nonce_bytes.hex(), now))
            self._move(from_norm, to_norm, value, now)

            logger.info(
                "Authorization used",
                extra={
                    "event": "authorization.used",
                    "type": primary_type,
                    "from": from_norm[:10],
                    "to": to_norm[:10],
                    "caller": caller_norm[:10],
                    "amount": value,
                },
            )
            return True

    # ==================== Helpers ====================

    def _mint(self, to: str, amount: int) -> None:
        if amount == 0:
            return
        self.total_supply += amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self._emit(TokenEvent("Transfer", ZERO_ADDRESS, to, amount, self._now()))

    def _move(self, from_norm: str, to_norm: str, amount: int, now: int | None = None) -> None:
        """Debit and credit in one step; preconditions already checked."""
        self.balances[from_norm] = self.balances.get(from_norm, 0) - amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        self._emit(TokenEvent("Transfer", from_norm, to_norm, amount, now if now is not None else self._now()))

        logger.debug(
            "Token transfer",
            extra={
                "event": "ledger.transfer",
                "token": self.symbol,
                "from": from_norm[:10],
                "to": to_norm[:10],
                "amount": amount,
            },
        )

    def _require_balance(self, account: str, amount: int) -> None:
        balance = self.balances.get(account, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Transfer amount exceeds balance ({amount} > {balance})",
                details={"account": account, "balance": balance, "amount": amount},
            )

    def _normalize(self, address: str) -> str:
        return normalize_address(address)

    def _checked_address(self, address: str, field: str) -> str:
        normalized = normalize_address(address, field)
        self._validate_address(normalized, field)
        return normalized

    def _validate_address(self, address: str, field: str) -> None:
        if is_zero_address(address):
            raise InvalidAddressError(f"{field} is zero address", details={"field": field})

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidAmountError(f"Amount must be an integer, got {type(amount).__name__}")
        if amount < 0:
            raise InvalidAmountError("Amount cannot be negative")
        if amount > self.UINT256_MAX:
            raise InvalidAmountError("Amount exceeds uint256")

    def _current_time(self, current_time: int | None) -> int:
        timestamp = current_time if current_time is not None else self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise ValueError("time_provider must return an integer timestamp") from exc

    def _now(self) -> int:
        return self._current_time(None)

    def _emit(self, event: TokenEvent | AuthorizationEvent) -> None:
        self.events.append(event)
