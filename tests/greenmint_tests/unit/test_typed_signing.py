"""Tests for EIP-712 hashing of the gasless transfer messages."""

import pytest

from greenmint.core.typed_signing import (
    CANCEL_AUTHORIZATION,
    EIP712_DOMAIN_TYPE,
    RECEIVE_WITH_AUTHORIZATION,
    TRANSFER_WITH_AUTHORIZATION,
    TypedDataDomain,
    cancel_message,
    create_typed_sign_request,
    encode_type,
    hash_domain,
    hash_message,
    transfer_message,
    type_hash,
    typed_data_digest,
)
from greenmint.core.address import keccak256

LEDGER = "0x" + "12" * 20
FROM = "0x" + "aa" * 20
TO = "0x" + "bb" * 20
NONCE = b"\x01" * 32


def _domain(**overrides):
    params = {"name": "Green Minting Token", "version": "1", "chain_id": 31337, "verifying_contract": LEDGER}
    params.update(overrides)
    return TypedDataDomain(**params)


class TestTypeHashes:
    """Type strings match the published EIP-3009 definitions."""

    def test_transfer_type_hash(self):
        assert type_hash(TRANSFER_WITH_AUTHORIZATION).hex() == (
            "7c7c6cdb67a18743f49ec6fa9b35f50d52ed05cbed4cc592e13b44501c1a2267"
        )

    def test_receive_type_hash(self):
        assert type_hash(RECEIVE_WITH_AUTHORIZATION).hex() == (
            "d099cc98ef71107a616c4f0f941f04c322d8e254fe26b3c6668db87aae413de8"
        )

    def test_cancel_type_hash(self):
        assert type_hash(CANCEL_AUTHORIZATION).hex() == (
            "158b0a9edf7a828aad02f63cd515c68ef2f50ba807396f6d12842833a1597429"
        )

    def test_domain_type_hash(self):
        encoded = encode_type("EIP712Domain", EIP712_DOMAIN_TYPE)
        assert encoded == "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
        assert keccak256(encoded.encode()).hex() == (
            "8b73c3c69bb8fe3d512ecc4cf759cc79239f7b179b0ffacaa9a75d522b39400f"
        )


class TestDomainSeparator:
    """Every domain field feeds the separator."""

    def test_deterministic(self):
        assert hash_domain(_domain()) == hash_domain(_domain())
        assert len(hash_domain(_domain())) == 32

    @pytest.mark.parametrize(
        "override",
        [
            {"name": "Other Token"},
            {"version": "2"},
            {"chain_id": 1},
            {"verifying_contract": "0x" + "34" * 20},
        ],
    )
    def test_each_field_changes_separator(self, override):
        assert hash_domain(_domain(**override)) != hash_domain(_domain())

    def test_address_case_does_not_matter(self):
        upper = "0x" + LEDGER[2:].upper()
        assert hash_domain(_domain(verifying_contract=upper)) == hash_domain(_domain())


class TestMessageDigest:
    """Digest binds the message type and every field."""

    def test_transfer_and_receive_digests_differ(self):
        separator = hash_domain(_domain())
        message = transfer_message(FROM, TO, 100, 0, 10**10, NONCE)
        assert typed_data_digest(separator, TRANSFER_WITH_AUTHORIZATION, message) != typed_data_digest(
            separator, RECEIVE_WITH_AUTHORIZATION, message
        )

    @pytest.mark.parametrize("field, value", [
        ("from", TO), ("to", FROM), ("value", 101), ("validAfter", 1), ("validBefore", 10**10 + 1),
        ("nonce", b"\x02" * 32),
    ])
    def test_each_field_changes_hash(self, field, value):
        message = transfer_message(FROM, TO, 100, 0, 10**10, NONCE)
        changed = dict(message, **{field: value})
        assert hash_message(TRANSFER_WITH_AUTHORIZATION, changed) != hash_message(TRANSFER_WITH_AUTHORIZATION, message)

    def test_cancel_message_hash(self):
        assert len(hash_message(CANCEL_AUTHORIZATION, cancel_message(FROM, NONCE))) == 32

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            hash_message("Permit", {})

    def test_out_of_range_uint_rejected(self):
        message = transfer_message(FROM, TO, 2**256, 0, 1, NONCE)
        with pytest.raises(ValueError):
            hash_message(TRANSFER_WITH_AUTHORIZATION, message)

    def test_short_nonce_rejected(self):
        message = transfer_message(FROM, TO, 1, 0, 1, b"\x01" * 31)
        with pytest.raises(ValueError):
            hash_message(TRANSFER_WITH_AUTHORIZATION, message)


class TestSignRequest:
    """Wallet payload layout."""

    def test_request_layout(self):
        request = create_typed_sign_request(
            _domain(), TRANSFER_WITH_AUTHORIZATION, transfer_message(FROM, TO, 5, 0, 99, NONCE)
        )

        assert request["primaryType"] == TRANSFER_WITH_AUTHORIZATION
        assert set(request["types"]) == {"EIP712Domain", TRANSFER_WITH_AUTHORIZATION}
        assert request["domain"]["chainId"] == 31337
        assert request["domain"]["verifyingContract"].lower() == LEDGER
        assert request["message"]["nonce"] == "0x" + NONCE.hex()
        assert request["message"]["from"].lower() == FROM
        assert request["message"]["value"] == 5

    def test_request_does_not_mutate_message(self):
        message = transfer_message(FROM, TO, 5, 0, 99, NONCE)
        create_typed_sign_request(_domain(), TRANSFER_WITH_AUTHORIZATION, message)
        assert message["nonce"] == NONCE
