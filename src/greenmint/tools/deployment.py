"""
Green Minting deployment orchestration.

Builds the token ledger with the prefunded accounts, builds the vesting lock,
funds the lock from the deployer's vesting reserve and records the result as
a JSON deployment file named ``<network>__<YYYY-MM-DD_HH-MM-SS>.json``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from greenmint.core import config
from greenmint.core.address import to_checksum_address
from greenmint.core.contracts import TokenLedger, VestedLock
from greenmint.core.ledger_exceptions import ConstructionError

logger = logging.getLogger(__name__)

ONE_YEAR_IN_SEC = 31536000
UNVESTING_START_TIMESTAMP = 1767139200  # 31 Dec 2025
CLAIMING_PERCENTS_SCHEDULE = [3000, 2000, 1000, 500, 500, 500, 500, 500, 500, 500, 250, 250]


@dataclass
class PrefundedAccount:
    address: str
    amount: int


@dataclass
class DeploymentPlan:
    """Constructor arguments for the ledger and the vesting lock."""

    prefunded_accounts: list[PrefundedAccount]
    vesting_account: str
    vested_amount: int
    schedule: list[int] = field(default_factory=lambda: list(CLAIMING_PERCENTS_SCHEDULE))
    stage_duration: int = ONE_YEAR_IN_SEC
    start_timestamp: int = UNVESTING_START_TIMESTAMP

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeploymentPlan":
        """
        Build a plan from JSON-style data. Amounts may be given as integers
        or decimal strings (token amounts overflow JSON number precision).
        """
        try:
            accounts = [
                PrefundedAccount(address=entry["address"], amount=int(entry["amount"]))
                for entry in data.get("prefundedAccounts", [])
            ]
            return cls(
                prefunded_accounts=accounts,
                vesting_account=data["vestingAccount"],
                vested_amount=int(data["vestedAmount"]),
                schedule=[int(p) for p in data.get("schedule", CLAIMING_PERCENTS_SCHEDULE)],
                stage_duration=int(data.get("stageDuration", ONE_YEAR_IN_SEC)),
                start_timestamp=int(data.get("startTimestamp", UNVESTING_START_TIMESTAMP)),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConstructionError(f"Invalid deployment plan: {exc}") from exc

    @classmethod
    def load(cls, path: str | Path) -> "DeploymentPlan":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


@dataclass
class Deployment:
    ledger: TokenLedger
    vested_lock: VestedLock
    deployer: str
    plan: DeploymentPlan
    network: str

    def to_record(self) -> dict[str, Any]:
        """JSON-serializable deployment record."""
        return {
            "network": self.network,
            "chainId": self.ledger.chain_id,
            "greenMintingToken": to_checksum_address(self.ledger.address),
            "vestedLock": to_checksum_address(self.vested_lock.address),
            "deployer": to_checksum_address(self.deployer),
            "prefundedAccounts": [
                {"address": to_checksum_address(a.address), "amount": str(a.amount)}
                for a in self.plan.prefunded_accounts
            ],
            "vesting": {
                "vestingAccount": to_checksum_address(self.plan.vesting_account),
                "vestedAmount": str(self.plan.vested_amount),
                "schedule": list(self.plan.schedule),
                "stageDuration": self.plan.stage_duration,
                "startTimestamp": self.plan.start_timestamp,
            },
        }


def deploy(
    plan: DeploymentPlan,
    deployer: str,
    network: str | None = None,
    chain_id: int | None = None,
    time_provider: Callable[[], int] | None = None,
) -> Deployment:
    """
    Deploy ledger and lock, then fund the lock with the vesting reserve.

    Raises:
        ConfigurationError: unknown network
        ConstructionError: invalid plan parameters
    """
    network_type = config.get_network(network)
    if chain_id is None:
        chain_id = config.resolve_chain_id(network_type)

    logger.info(
        "Deploying token ledger",
        extra={"event": "deploy.ledger", "network": network_type.value, "chain_id": chain_id},
    )
    ledger = TokenLedger(
        [a.address for a in plan.prefunded_accounts],
        [a.amount for a in plan.prefunded_accounts],
        plan.vested_amount,
        deployer=deployer,
        chain_id=chain_id,
        time_provider=time_provider,
    )

    logger.info("Deploying vested lock", extra={"event": "deploy.vested_lock"})
    lock = VestedLock(
        beneficiary=plan.vesting_account,
        stage_duration=plan.stage_duration,
        schedule=plan.schedule,
        start_timestamp=plan.start_timestamp,
        ledger=ledger,
        vested_amount=plan.vested_amount,
        funder=deployer,
        time_provider=time_provider,
    )

    ledger.approve(deployer, lock.address, plan.vested_amount)
    lock.lock_funds(deployer)

    logger.info(
        "Deployment complete",
        extra={"event": "deploy.complete", "ledger": ledger.address, "vested_lock": lock.address},
    )
    return Deployment(
        ledger=ledger,
        vested_lock=lock,
        deployer=ledger.deployer,
        plan=plan,
        network=network_type.value,
    )


def build_deployment_file_name(network: str, when: datetime | None = None) -> str:
    when = when or datetime.now()
    return f"{network}__{when.strftime('%Y-%m-%d_%H-%M-%S')}.json"


def save_deployment(
    deployment: Deployment,
    directory: str | Path | None = None,
    when: datetime | None = None,
) -> Path:
    """Write the deployment record and return its path."""
    target_dir = Path(directory or config.DEPLOYMENTS_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / build_deployment_file_name(deployment.network, when)

    record = deployment.to_record()
    tmp_path = path.with_suffix(".json.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(record, f, indent=2)
    os.replace(tmp_path, path)

    logger.info(
        "Deployment record saved to %s",
        path,
        extra={"event": "deploy.saved", "path": str(path)},
    )
    return path
