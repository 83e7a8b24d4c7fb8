import pytest

from greenmint.core.crypto_utils import private_key_to_address, sign_digest
from greenmint.core.typed_signing import (
    CANCEL_AUTHORIZATION,
    TRANSFER_WITH_AUTHORIZATION,
    cancel_message,
    transfer_message,
    typed_data_digest,
)

START_TIME = 1_700_000_000
CHAIN_ID = 31337

ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32
CAROL_KEY = "0x" + "33" * 32
DEPLOYER_KEY = "0x" + "44" * 32
BENEFICIARY_KEY = "0x" + "55" * 32


class Clock:
    """Mutable time source handed to ledgers and locks as time_provider."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def accounts():
    """Deterministic test accounts: name -> (private key, lowercase address)."""
    keys = {
        "alice": ALICE_KEY,
        "bob": BOB_KEY,
        "carol": CAROL_KEY,
        "deployer": DEPLOYER_KEY,
        "beneficiary": BENEFICIARY_KEY,
    }
    return {name: (key, private_key_to_address(key)) for name, key in keys.items()}


@pytest.fixture
def ledger(accounts, clock):
    """Ledger with two holders at 500 each and a 100000 vesting reserve."""
    from greenmint.core.contracts import TokenLedger

    return TokenLedger(
        [accounts["alice"][1], accounts["bob"][1]],
        [500, 500],
        100000,
        deployer=accounts["deployer"][1],
        chain_id=CHAIN_ID,
        time_provider=clock,
    )


@pytest.fixture
def sign_transfer():
    """Sign a transfer/receive authorization for a ledger's domain."""

    def _sign(
        ledger,
        private_key,
        to_addr,
        value,
        valid_after,
        valid_before,
        nonce,
        primary_type=TRANSFER_WITH_AUTHORIZATION,
        from_addr=None,
    ):
        signer = from_addr or private_key_to_address(private_key)
        message = transfer_message(signer, to_addr.lower(), value, valid_after, valid_before, nonce)
        digest = typed_data_digest(ledger.domain_separator, primary_type, message)
        return sign_digest(private_key, digest)

    return _sign


@pytest.fixture
def sign_cancel():
    """Sign a cancel authorization for a ledger's domain."""

    def _sign(ledger, private_key, nonce, authorizer=None):
        authorizer = authorizer or private_key_to_address(private_key)
        digest = typed_data_digest(
            ledger.domain_separator, CANCEL_AUTHORIZATION, cancel_message(authorizer, nonce)
        )
        return sign_digest(private_key, digest)

    return _sign


@pytest.fixture
def nonce_factory():
    counter = {"n": 0}

    def _next() -> bytes:
        counter["n"] += 1
        return counter["n"].to_bytes(32, "big")

    return _next


@pytest.fixture
def deployed_lock(accounts, ledger, clock):
    """Funded lock: schedule 30/20/50 percent, 150s stages, starting in 100s."""
    from greenmint.core.contracts import VestedLock

    deployer = accounts["deployer"][1]
    lock = VestedLock(
        beneficiary=accounts["beneficiary"][1],
        stage_duration=150,
        schedule=[3000, 2000, 5000],
        start_timestamp=clock.now + 100,
        ledger=ledger,
        vested_amount=100000,
        funder=deployer,
        time_provider=clock,
    )
    ledger.approve(deployer, lock.address, 100000)
    lock.lock_funds(deployer)
    return lock


@pytest.fixture
def plan_data(accounts):
    return {
        "prefundedAccounts": [
            {"address": accounts["alice"][1], "amount": "500"},
            {"address": accounts["bob"][1], "amount": 500},
        ],
        "vestingAccount": accounts["beneficiary"][1],
        "vestedAmount": "100000",
        "schedule": [3000, 2000, 5000],
        "stageDuration": 150,
        "startTimestamp": START_TIME + 100,
    }

