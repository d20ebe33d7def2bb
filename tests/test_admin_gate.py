"""Test the admin-group authorization gate."""
import pytest
from unittest.mock import MagicMock
from server.auth import Caller
from server.config import ApprovalConfig
from server.governance.admin_gate import AdminGate
from tests.conftest import FakeIdentity


class TestAdminGate:

    def test_admin_allowed(self, approval_config, admin_identity):
        decision = AdminGate(approval_config, admin_identity).check()
        assert decision.allowed is True
        assert decision.caller.identity == "admin@example.com"

    def test_non_admin_denied(self, approval_config, analyst_identity):
        decision = AdminGate(approval_config, analyst_identity).check()
        assert decision.allowed is False
        assert "admins" in decision.reason
        assert "analyst@example.com" in decision.reason

    def test_configured_group_name_used(self, analyst_identity):
        cfg = ApprovalConfig(secret=b"s", admin_group="analysts")
        assert AdminGate(cfg, analyst_identity).check().allowed is True

    def test_group_match_is_exact(self, approval_config):
        identity = FakeIdentity(Caller("x@example.com", frozenset({"Admins", "admins-ro"})))
        assert AdminGate(approval_config, identity).check().allowed is False

    def test_no_groups_denied(self, approval_config):
        identity = FakeIdentity(Caller("x@example.com"))
        assert AdminGate(approval_config, identity).check().allowed is False

    def test_identity_looked_up_every_call(self, approval_config, admin_identity):
        gate = AdminGate(approval_config, admin_identity)
        gate.check()
        gate.check()
        gate.check()
        assert admin_identity.calls == 3

    def test_membership_change_takes_effect_immediately(self, approval_config, admin_identity):
        gate = AdminGate(approval_config, admin_identity)
        assert gate.check().allowed is True
        admin_identity.caller = Caller("admin@example.com", frozenset({"users"}))
        assert gate.check().allowed is False

    def test_lookup_failure_fails_closed(self, approval_config):
        identity = MagicMock()
        identity.current_caller.side_effect = TimeoutError("SCIM timed out")
        decision = AdminGate(approval_config, identity).check()
        assert decision.allowed is False
        assert decision.caller is None
