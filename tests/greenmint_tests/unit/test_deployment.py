"""Tests for deployment orchestration and deployment records."""

import json
from datetime import datetime

import pytest

from greenmint.core.contracts import LockState
from greenmint.core.config import ConfigurationError
from greenmint.core.ledger_exceptions import ConstructionError
from greenmint.tools.deployment import (
    CLAIMING_PERCENTS_SCHEDULE,
    ONE_YEAR_IN_SEC,
    UNVESTING_START_TIMESTAMP,
    DeploymentPlan,
    build_deployment_file_name,
    deploy,
    save_deployment,
)


class TestDeploymentPlan:
    """Plan parsing."""

    def test_from_dict(self, plan_data, accounts):
        plan = DeploymentPlan.from_dict(plan_data)
        assert [a.amount for a in plan.prefunded_accounts] == [500, 500]
        assert plan.vesting_account == accounts["beneficiary"][1]
        assert plan.vested_amount == 100000
        assert plan.schedule == [3000, 2000, 5000]
        assert plan.stage_duration == 150

    def test_defaults(self, accounts):
        plan = DeploymentPlan.from_dict({"vestingAccount": accounts["beneficiary"][1], "vestedAmount": 1})
        assert plan.prefunded_accounts == []
        assert plan.schedule == CLAIMING_PERCENTS_SCHEDULE
        assert sum(plan.schedule) == 10000
        assert plan.stage_duration == ONE_YEAR_IN_SEC
        assert plan.start_timestamp == UNVESTING_START_TIMESTAMP

    @pytest.mark.parametrize("broken", [{}, {"vestingAccount": "0x" + "01" * 20, "vestedAmount": "lots"}])
    def test_invalid_plan(self, broken):
        with pytest.raises(ConstructionError):
            DeploymentPlan.from_dict(broken)

    def test_load(self, plan_data, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text(json.dumps(plan_data))
        assert DeploymentPlan.load(path).vested_amount == 100000


class TestDeploy:
    """End-to-end deployment."""

    def test_deploy_funds_lock(self, plan_data, accounts, clock):
        plan = DeploymentPlan.from_dict(plan_data)
        deployer = accounts["deployer"][1]

        deployment = deploy(plan, deployer, network="hardhat", time_provider=clock)

        ledger, lock = deployment.ledger, deployment.vested_lock
        assert ledger.chain_id == 31337
        assert ledger.balance_of(accounts["alice"][1]) == 500
        assert ledger.balance_of(lock.address) == 100000
        assert ledger.balance_of(deployer) == 0
        assert lock.state is LockState.FUNDED
        assert lock.beneficiary == accounts["beneficiary"][1]

    def test_explicit_chain_id(self, plan_data, accounts):
        deployment = deploy(DeploymentPlan.from_dict(plan_data), accounts["deployer"][1], network="sepolia", chain_id=5)
        assert deployment.ledger.chain_id == 5
        assert deployment.network == "sepolia"

    def test_network_chain_ids(self, plan_data, accounts):
        plan = DeploymentPlan.from_dict(plan_data)
        assert deploy(plan, accounts["deployer"][1], network="sepolia").ledger.chain_id == 11155111
        assert deploy(plan, accounts["deployer"][1], network="mainnet").ledger.chain_id == 1

    def test_unknown_network(self, plan_data, accounts):
        with pytest.raises(ConfigurationError):
            deploy(DeploymentPlan.from_dict(plan_data), accounts["deployer"][1], network="ropsten")

    def test_bad_schedule_fails_before_funding(self, plan_data, accounts):
        plan_data["schedule"] = [20000]
        with pytest.raises(ConstructionError):
            deploy(DeploymentPlan.from_dict(plan_data), accounts["deployer"][1], network="hardhat")


class TestDeploymentRecord:
    """Deployment files."""

    def test_file_name(self):
        when = datetime(2025, 12, 31, 8, 5, 9)
        assert build_deployment_file_name("sepolia", when) == "sepolia__2025-12-31_08-05-09.json"

    def test_save_deployment(self, plan_data, accounts, tmp_path):
        deployment = deploy(DeploymentPlan.from_dict(plan_data), accounts["deployer"][1], network="hardhat")
        path = save_deployment(deployment, tmp_path / "deployments", when=datetime(2025, 1, 2, 3, 4, 5))

        assert path.name == "hardhat__2025-01-02_03-04-05.json"
        record = json.loads(path.read_text())
        assert record["network"] == "hardhat"
        assert record["chainId"] == 31337
        assert record["greenMintingToken"].lower() == deployment.ledger.address
        assert record["vestedLock"].lower() == deployment.vested_lock.address
        assert record["prefundedAccounts"][0]["amount"] == "500"
        assert record["vesting"]["vestedAmount"] == "100000"
        assert record["vesting"]["schedule"] == [3000, 2000, 5000]
        assert not list(path.parent.glob("*.tmp"))
