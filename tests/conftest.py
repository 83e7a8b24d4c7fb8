"""
Shared test configuration: import paths and an environment free of
GREENMINT_* overrides from the developer's shell.
"""
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep shell settings out of network and chain id resolution."""
    for var in ("GREENMINT_NETWORK", "GREENMINT_CHAIN_ID", "GREENMINT_DEPLOYMENTS_DIR"):
        monkeypatch.delenv(var, raising=False)
    yield
