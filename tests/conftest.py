import pytest

from proofcall.config import EnvironmentConfig

# Well-known local development account (anvil / hardhat account #0).
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
VERIFIER = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def env_config() -> EnvironmentConfig:
    return EnvironmentConfig(
        rpc_url="http://127.0.0.1:8545",
        verifier_address=VERIFIER,
        private_key=DEV_KEY,
        call_timeout=5,
    )
