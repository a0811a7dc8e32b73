"""
Fixtures for tests
"""

import pytest

from starknet_devtools.script import ScriptExecutionContext
from starknet_devtools.state_file import FileTransactionStore

from .shared import TOKEN_CLASS_HASH, TOKEN_CONTRACT_NAME
from .util import FakeArtifacts, FakeChainClient, make_account


@pytest.fixture(name="chain")
def fixture_chain():
    """
    Fresh in-memory chain
    """
    return FakeChainClient()


@pytest.fixture(name="state_file_path")
def fixture_state_file_path(tmp_path):
    """
    Path of a state file which does not exist yet
    """
    return str(tmp_path / "script_alpha-sepolia_state.json")


@pytest.fixture(name="artifacts")
def fixture_artifacts():
    """
    Artifacts of the package the scripts under test belong to
    """
    return {TOKEN_CONTRACT_NAME: FakeArtifacts(TOKEN_CLASS_HASH)}


@pytest.fixture(name="context")
def fixture_context(chain, artifacts, state_file_path):
    """
    Execution context with an account and a state file
    """
    with ScriptExecutionContext(
        client=chain,
        artifacts=artifacts,
        store=FileTransactionStore(state_file_path),
        account=make_account(),
    ) as context:
        yield context
