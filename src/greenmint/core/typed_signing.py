"""
Green Minting Typed Data Signing - EIP-712

Hashes the three structured authorization messages of the ledger's
gasless-transfer protocol (EIP-3009):

- TransferWithAuthorization: redeemable by any submitter
- ReceiveWithAuthorization: redeemable only by the payee
- CancelAuthorization: burns a nonce before it is used

Every digest binds a domain separator (token name, version, chain id and
ledger address) and the message's type hash, so a signature is only valid
for one message type on one ledger on one chain.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .address import address_to_bytes, keccak256, to_checksum_address

EIP712_PREFIX = b"\x19\x01"

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

TRANSFER_WITH_AUTHORIZATION = "TransferWithAuthorization"
RECEIVE_WITH_AUTHORIZATION = "ReceiveWithAuthorization"
CANCEL_AUTHORIZATION = "CancelAuthorization"

_TRANSFER_FIELDS = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "validAfter", "type": "uint256"},
    {"name": "validBefore", "type": "uint256"},
    {"name": "nonce", "type": "bytes32"},
]

AUTHORIZATION_TYPES: Dict[str, List[Dict[str, str]]] = {
    TRANSFER_WITH_AUTHORIZATION: _TRANSFER_FIELDS,
    RECEIVE_WITH_AUTHORIZATION: list(_TRANSFER_FIELDS),
    CANCEL_AUTHORIZATION: [
        {"name": "authorizer", "type": "address"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


@dataclass(frozen=True)
class TypedDataDomain:
    """
    EIP-712 domain.

    Prevents signature replay across different:
    - Ledgers (name, verifying_contract)
    - Chains (chain_id)
    - Versions (version)
    """
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": to_checksum_address(self.verifying_contract),
        }


def encode_type(type_name: str, fields: List[Dict[str, str]]) -> str:
    """EIP-712 encodeType for a struct without nested struct members."""
    return f"{type_name}({','.join(f['type'] + ' ' + f['name'] for f in fields)})"


def _encode_value(type_name: str, value: Any) -> bytes:
    """Encode a single atomic or dynamic value into its 32-byte slot."""
    if type_name == "string":
        return keccak256(value.encode("utf-8"))
    if type_name == "address":
        return address_to_bytes(value).rjust(32, b"\x00")
    if type_name == "uint256":
        value = int(value)
        if value < 0 or value >= 2**256:
            raise ValueError(f"uint256 out of range: {value}")
        return value.to_bytes(32, "big")
    if type_name == "bytes32":
        if len(value) != 32:
            raise ValueError(f"bytes32 must be 32 bytes, got {len(value)}")
        return bytes(value)
    raise ValueError(f"Unknown type: {type_name}")


def _hash_struct(type_name: str, fields: List[Dict[str, str]], data: Dict[str, Any]) -> bytes:
    encoded = keccak256(encode_type(type_name, fields).encode("utf-8"))
    for field in fields:
        encoded += _encode_value(field["type"], data[field["name"]])
    return keccak256(encoded)


def type_hash(primary_type: str) -> bytes:
    """keccak256 of the encoded type string of an authorization message."""
    return keccak256(encode_type(primary_type, AUTHORIZATION_TYPES[primary_type]).encode("utf-8"))


def hash_domain(domain: TypedDataDomain) -> bytes:
    """Compute the domain separator."""
    return _hash_struct("EIP712Domain", EIP712_DOMAIN_TYPE, domain.to_dict())


def hash_message(primary_type: str, message: Dict[str, Any]) -> bytes:
    """hashStruct of one of the authorization message types."""
    if primary_type not in AUTHORIZATION_TYPES:
        raise ValueError(f"Unknown authorization type: {primary_type}")
    return _hash_struct(primary_type, AUTHORIZATION_TYPES[primary_type], message)


def typed_data_digest(domain_separator: bytes, primary_type: str, message: Dict[str, Any]) -> bytes:
    """
    Final 32-byte digest that is signed:
    keccak256("\\x19\\x01" || domainSeparator || hashStruct(message))
    """
    return keccak256(EIP712_PREFIX + domain_separator + hash_message(primary_type, message))


def transfer_message(
    from_addr: str,
    to_addr: str,
    value: int,
    valid_after: int,
    valid_before: int,
    nonce: bytes,
) -> Dict[str, Any]:
    """Message body shared by transfer and receive authorizations."""
    return {
        "from": from_addr,
        "to": to_addr,
        "value": value,
        "validAfter": valid_after,
        "validBefore": valid_before,
        "nonce": nonce,
    }


def cancel_message(authorizer: str, nonce: bytes) -> Dict[str, Any]:
    return {"authorizer": authorizer, "nonce": nonce}


def create_typed_sign_request(
    domain: TypedDataDomain,
    primary_type: str,
    message: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Full typed-data payload in the eth_signTypedData_v4 layout, for
    handing to an external wallet.
    """
    rendered = dict(message)
    for field in AUTHORIZATION_TYPES[primary_type]:
        if field["type"] == "bytes32":
            rendered[field["name"]] = "0x" + bytes(message[field["name"]]).hex()
        elif field["type"] == "address":
            rendered[field["name"]] = to_checksum_address(message[field["name"]])

    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            primary_type: AUTHORIZATION_TYPES[primary_type],
        },
        "primaryType": primary_type,
        "domain": domain.to_dict(),
        "message": rendered,
    }
