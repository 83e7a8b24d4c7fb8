"""Helpers for secp256k1 signatures over authorization digests."""

from __future__ import annotations

from typing import Protocol, Tuple, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from .address import ZERO_ADDRESS, normalize_address
from .ledger_exceptions import SignatureInvalidError

_CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

SignatureLike = Union[bytes, str, Tuple[int, Union[bytes, int], Union[bytes, int]]]


class SignatureVerifier(Protocol):
    """Recovers the signer of a 32-byte digest."""

    def recover(self, digest: bytes, signature: SignatureLike) -> str:
        ...


def _validate_signature_range(r: int, s: int) -> None:
    """
    Ensure signature components fall within the curve order.

    Raises:
        SignatureInvalidError: If either component is out of range.
    """
    if not (1 <= r < _CURVE_ORDER):
        raise SignatureInvalidError("Signature r component out of range.")
    if not (1 <= s < _CURVE_ORDER):
        raise SignatureInvalidError("Signature s component out of range.")


def is_canonical_signature(r: int, s: int) -> bool:
    """
    Check whether signature components are in range and low-S.

    High-S signatures are malleable twins of valid ones and are rejected.
    """
    try:
        _validate_signature_range(r, s)
    except SignatureInvalidError:
        return False
    return s <= _CURVE_ORDER // 2


def _component(value: Union[bytes, int], name: str) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(value) != 32:
        raise SignatureInvalidError(f"Signature {name} must be 32 bytes, got {len(value)}")
    return int.from_bytes(value, "big")


def split_signature(signature: SignatureLike) -> Tuple[int, int, int]:
    """
    Split a signature into (v, r, s) with v normalized to 27/28.

    Accepts 65-byte r||s||v (raw or 0x-hex) or a (v, r, s) tuple.

    Raises:
        SignatureInvalidError: On wrong length, bad recovery id or
            non-canonical components.
    """
    try:
        if isinstance(signature, tuple):
            if len(signature) != 3:
                raise SignatureInvalidError("Signature tuple must be (v, r, s)")
            v = int(signature[0])
            r = _component(signature[1], "r")
            s = _component(signature[2], "s")
        else:
            raw = signature
            if isinstance(raw, str):
                raw = bytes.fromhex(raw[2:] if raw.startswith("0x") else raw)
            if len(raw) != 65:
                raise SignatureInvalidError(f"Signature must be 65 bytes, got {len(raw)}")
            r = int.from_bytes(raw[:32], "big")
            s = int.from_bytes(raw[32:64], "big")
            v = raw[64]
    except (TypeError, ValueError) as exc:
        raise SignatureInvalidError(f"Malformed signature: {exc}") from exc

    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        raise SignatureInvalidError(f"Invalid signature recovery id: {v}")
    if not is_canonical_signature(r, s):
        raise SignatureInvalidError("Signature is not in canonical low-S form")
    return v, r, s


def recover_signer(digest: bytes, signature: SignatureLike) -> str:
    """
    Recover the lowercase address that signed ``digest``.

    Raises:
        SignatureInvalidError: If the signature is malformed or recovers to
            no address (or to the zero address).
    """
    if len(digest) != 32:
        raise SignatureInvalidError("Digest must be 32 bytes")

    v, r, s = split_signature(signature)
    try:
        sig = keys.Signature(vrs=(v - 27, r, s))
        public_key = sig.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError, ValueError) as exc:
        raise SignatureInvalidError(f"Signature recovery failed: {exc}") from exc

    signer = normalize_address(public_key.to_address())
    if signer == ZERO_ADDRESS:
        raise SignatureInvalidError("Signature recovers to the zero address")
    return signer


class EcdsaSignatureVerifier:
    """Default verifier: secp256k1 public key recovery."""

    def recover(self, digest: bytes, signature: SignatureLike) -> str:
        return recover_signer(digest, signature)


def load_private_key_from_hex(private_hex: str) -> keys.PrivateKey:
    raw = bytes.fromhex(private_hex[2:] if private_hex.startswith("0x") else private_hex)
    return keys.PrivateKey(raw)


def private_key_to_address(private_hex: str) -> str:
    """Lowercase address controlled by a private key."""
    return normalize_address(load_private_key_from_hex(private_hex).public_key.to_address())


def sign_digest(private_hex: str, digest: bytes) -> bytes:
    """Sign a 32-byte digest, returning 65-byte r||s||v with v in {27, 28}."""
    sig = load_private_key_from_hex(private_hex).sign_msg_hash(digest)
    return sig.r.to_bytes(32, "big") + sig.s.to_bytes(32, "big") + bytes([sig.v + 27])
