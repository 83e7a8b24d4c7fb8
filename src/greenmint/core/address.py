"""
Green Minting Addresses - 20-byte hex accounts with EIP-55 checksums

Accounts and contracts are identified by Ethereum-style addresses:
- Raw:      0x82a274a6f7c2990a5dae92c2c0fbb0890ad2e69c
- Checksum: 0x82a274a6F7C2990a5dAe92C2c0fbB0890aD2E69c

Ledger state is keyed by the lowercase form; the checksummed form is used
for display and deployment records.
"""

from __future__ import annotations

import re
import secrets

from Crypto.Hash import keccak

from .ledger_exceptions import InvalidAddressError

ZERO_ADDRESS = "0x" + "0" * 40
_HEX_RE = re.compile(r"[0-9a-fA-F]{40}")


def keccak256(data: bytes) -> bytes:
    """Compute keccak256 hash (same as Ethereum)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def to_checksum_address(address: str) -> str:
    """
    Convert an address to its EIP-55 mixed-case form.

    Raises:
        InvalidAddressError: If the address is not 0x + 40 hex characters
    """
    hex_lower = _hex_part(address).lower()
    address_hash = keccak256(hex_lower.encode("utf-8")).hex()

    checksummed = []
    for i, char in enumerate(hex_lower):
        if char in "0123456789":
            checksummed.append(char)
        elif int(address_hash[i], 16) >= 8:
            checksummed.append(char.upper())
        else:
            checksummed.append(char)

    return "0x" + "".join(checksummed)


def is_checksum_valid(address: str) -> bool:
    """
    True if the address is all-lowercase, all-uppercase, or a correct
    EIP-55 mixed-case checksum.
    """
    try:
        hex_part = _hex_part(address)
    except InvalidAddressError:
        return False

    if hex_part == hex_part.lower() or hex_part == hex_part.upper():
        return True
    return address == to_checksum_address(address)


def normalize_address(address: str, field: str = "address") -> str:
    """
    Normalize an address to the lowercase key used in ledger state.

    Mixed-case input must carry a valid checksum so a mistyped address
    cannot silently receive funds.

    Raises:
        InvalidAddressError: If the address is malformed or the checksum fails
    """
    if not isinstance(address, str):
        raise InvalidAddressError(
            f"{field} must be a hex string, got {type(address).__name__}",
            details={"field": field},
        )
    if not is_checksum_valid(address):
        raise InvalidAddressError(
            f"{field} is not a valid address: {address}",
            details={"field": field, "address": address},
        )
    return "0x" + _hex_part(address).lower()


def is_zero_address(address: str) -> bool:
    return address.lower() == ZERO_ADDRESS


def address_to_bytes(address: str) -> bytes:
    """20 raw bytes of an address."""
    return bytes.fromhex(_hex_part(address))


def derive_contract_address(deployer: str, salt: bytes | None = None) -> str:
    """
    Derive a fresh contract address from the deployer and a salt.

    Without a salt a random one is drawn, so two deployments by the same
    account never share an address (and therefore never share a signing
    domain).
    """
    if salt is None:
        salt = secrets.token_bytes(32)
    digest = keccak256(address_to_bytes(normalize_address(deployer, "deployer")) + salt)
    return "0x" + digest[-20:].hex()


def _hex_part(address: str) -> str:
    if not isinstance(address, str) or not address.startswith(("0x", "0X")):
        raise InvalidAddressError(f"Address must start with 0x: {address!r}")
    hex_part = address[2:]
    if len(hex_part) != 40:
        raise InvalidAddressError(
            f"Address hex part must be 40 characters, got {len(hex_part)}"
        )
    if not _HEX_RE.fullmatch(hex_part):
        raise InvalidAddressError(f"Invalid hex characters in address: {address}")
    return hex_part
