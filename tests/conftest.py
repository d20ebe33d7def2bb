"""Shared test fixtures for FGAC Policy MCP tests."""
import pytest
from unittest.mock import MagicMock
from server.auth import Caller
from server.config import ApprovalConfig
from server.governance.admin_gate import AdminGate
from server.governance.changes import ChangeRequest
from server.governance.dispatcher import MutationDispatcher
from server.governance.preview import PreviewService
from server.governance.tokens import ApprovalTokenCodec

T0 = 1_700_000_000


class FakeClock:
    """Settable clock for token issue / expiry tests."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeIdentity:
    """Identity provider that counts lookups."""

    def __init__(self, caller: Caller):
        self.caller = caller
        self.calls = 0

    def current_caller(self) -> Caller:
        self.calls += 1
        return self.caller


@pytest.fixture
def approval_config():
    return ApprovalConfig(secret=b"test-secret-0123456789", admin_group="admins")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec(approval_config, clock):
    return ApprovalTokenCodec(approval_config, clock=clock)


@pytest.fixture
def admin_identity():
    return FakeIdentity(
        Caller(identity="admin@example.com", groups=frozenset({"admins", "users"}))
    )


@pytest.fixture
def analyst_identity():
    return FakeIdentity(
        Caller(identity="analyst@example.com", groups=frozenset({"analysts", "users"}))
    )


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.create_policy.return_value = {"name": "mask_ssn_finance"}
    store.update_policy.return_value = {"name": "mask_ssn_finance"}
    store.delete_policy.return_value = None
    return store


@pytest.fixture
def previews(codec, approval_config):
    return PreviewService(codec, approval_config)


@pytest.fixture
def make_dispatcher(codec, approval_config, mock_store):
    def _make(identity):
        return MutationDispatcher(codec, AdminGate(approval_config, identity), mock_store)

    return _make


@pytest.fixture
def create_request():
    return ChangeRequest(
        action="CREATE",
        policy_name="mask_ssn_finance",
        securable_type="SCHEMA",
        securable_fullname="prod.finance",
        policy_type="COLUMN_MASK",
        function_name="prod.finance.mask_ssn",
        to_principals=["analysts"],
        except_principals=["admins"],
        tag_name="pii_type",
        tag_value="ssn",
        comment="Mask SSNs for analysts",
    )


@pytest.fixture
def mock_workspace_client():
    mock = MagicMock()
    mock.api_client.do = MagicMock(return_value={"policies": []})
    return mock
