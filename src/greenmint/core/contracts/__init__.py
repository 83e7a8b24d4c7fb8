"""
Green Minting contracts.

- TokenLedger: fixed-supply fungible token with EIP-3009 signed transfers
- AuthorizationRegistry: nonce state table and signature verification
- VestedLock: staged release of the vesting allocation
"""

from .authorization_registry import AuthorizationRegistry, AuthorizationState
from .token_ledger import AuthorizationEvent, TokenEvent, TokenLedger
from .vested_lock import LockState, VestedLock, VestingEvent

__all__ = [
    "TokenLedger",
    "TokenEvent",
    "AuthorizationEvent",
    "AuthorizationRegistry",
    "AuthorizationState",
    "VestedLock",
    "VestingEvent",
    "LockState",
]
