"""Unit tests for the FGAC policies REST client."""
import pytest
from unittest.mock import MagicMock
from databricks.sdk.errors import NotFound
from server.governance.changes import ChangeRequest, PolicyType, SecurableType
from server.policy_store import (
    POLICIES_PATH,
    POLICY_QUOTAS,
    PolicyStore,
    build_policy_info,
    build_update,
)


def _policy(name, policy_type="POLICY_TYPE_COLUMN_MASK", on="prod.finance"):
    return {"name": name, "policy_type": policy_type, "on_securable_fullname": on}


class TestBuildPolicyInfo:
    def test_column_mask(self, create_request):
        info = build_policy_info(create_request)
        assert info == {
            "name": "mask_ssn_finance",
            "policy_type": "POLICY_TYPE_COLUMN_MASK",
            "on_securable_type": "SCHEMA",
            "on_securable_fullname": "prod.finance",
            "for_securable_type": "TABLE",
            "to_principals": ["analysts"],
            "except_principals": ["admins"],
            "comment": "Mask SSNs for analysts",
            "column_mask": {
                "function_name": "prod.finance.mask_ssn",
                "on_column": "masked_col",
            },
            "match_columns": [
                {"alias": "masked_col", "condition": "hasTagValue('pii_type', 'ssn')"}
            ],
        }

    def test_row_filter(self):
        request = ChangeRequest(
            action="CREATE", policy_name="eu_only", securable_type="CATALOG",
            securable_fullname="prod", policy_type="ROW_FILTER",
            function_name="prod.gov.is_eu", to_principals=["analysts"], tag_name="region",
        )
        info = build_policy_info(request)
        assert info["policy_type"] == "POLICY_TYPE_ROW_FILTER"
        assert info["row_filter"] == {
            "function_name": "prod.gov.is_eu",
            "using": [{"alias": "filter_col"}],
        }
        assert info["match_columns"] == [{"alias": "filter_col", "condition": "hasTag('region')"}]
        assert "column_mask" not in info
        assert "except_principals" not in info
        assert "comment" not in info


class TestBuildUpdate:
    def test_mask_lists_changed_fields(self):
        request = ChangeRequest(
            action="UPDATE", policy_name="p", securable_type="SCHEMA",
            securable_fullname="prod.finance", except_principals=["admins", "auditors"],
        )
        info, mask = build_update(request)
        assert mask == "except_principals"
        assert info["except_principals"] == ["admins", "auditors"]
        assert "to_principals" not in info

    def test_clearing_except_principals(self):
        request = ChangeRequest(
            action="UPDATE", policy_name="p", securable_type="SCHEMA",
            securable_fullname="prod.finance", except_principals=[],
        )
        info, mask = build_update(request)
        assert mask == "except_principals"
        assert info["except_principals"] == []


class TestPolicyStoreReads:
    def test_list_uses_securable_path(self, mock_workspace_client):
        store = PolicyStore(mock_workspace_client)
        store.list_policies(SecurableType.SCHEMA, "prod.finance")
        mock_workspace_client.api_client.do.assert_called_once_with(
            "GET",
            f"{POLICIES_PATH}/SCHEMA/prod.finance",
            query={"include_inherited": "true"},
        )

    def test_list_follows_pagination(self, mock_workspace_client):
        mock_workspace_client.api_client.do.side_effect = [
            {"policies": [_policy("a")], "next_page_token": "t1"},
            {"policies": [_policy("b")]},
        ]
        policies = PolicyStore(mock_workspace_client).list_policies(
            SecurableType.SCHEMA, "prod.finance", include_inherited=False
        )
        assert [p["name"] for p in policies] == ["a", "b"]
        second = mock_workspace_client.api_client.do.call_args_list[1]
        assert second.kwargs["query"] == {"include_inherited": "false", "page_token": "t1"}

    def test_list_filters_by_type(self, mock_workspace_client):
        mock_workspace_client.api_client.do.return_value = {
            "policies": [_policy("a"), _policy("b", "POLICY_TYPE_ROW_FILTER")]
        }
        policies = PolicyStore(mock_workspace_client).list_policies(
            SecurableType.SCHEMA, "prod.finance", policy_type=PolicyType.ROW_FILTER
        )
        assert [p["name"] for p in policies] == ["b"]

    def test_empty_response(self, mock_workspace_client):
        mock_workspace_client.api_client.do.return_value = None
        assert PolicyStore(mock_workspace_client).list_policies("TABLE", "a.b.c") == []

    def test_get_policy_path(self, mock_workspace_client):
        PolicyStore(mock_workspace_client).get_policy("mask ssn", "TABLE", "a.b.c")
        mock_workspace_client.api_client.do.assert_called_once_with(
            "GET", f"{POLICIES_PATH}/TABLE/a.b.c/mask%20ssn"
        )


class TestPolicyStoreWrites:
    def test_create_posts_body(self, mock_workspace_client, create_request):
        body = build_policy_info(create_request)
        PolicyStore(mock_workspace_client).create_policy(body)
        mock_workspace_client.api_client.do.assert_called_once_with(
            "POST", POLICIES_PATH, body=body
        )

    def test_update_patches_with_mask(self, mock_workspace_client):
        PolicyStore(mock_workspace_client).update_policy(
            "p", SecurableType.SCHEMA, "prod.finance", {"comment": "x"}, "comment"
        )
        mock_workspace_client.api_client.do.assert_called_once_with(
            "PATCH",
            f"{POLICIES_PATH}/SCHEMA/prod.finance/p",
            query={"update_mask": "comment"},
            body={"comment": "x"},
        )

    def test_delete(self, mock_workspace_client):
        result = PolicyStore(mock_workspace_client).delete_policy(
            "p", SecurableType.CATALOG, "prod"
        )
        assert result is None
        mock_workspace_client.api_client.do.assert_called_once_with(
            "DELETE", f"{POLICIES_PATH}/CATALOG/prod/p"
        )

    def test_errors_propagate(self, mock_workspace_client):
        mock_workspace_client.api_client.do.side_effect = NotFound("gone")
        with pytest.raises(NotFound):
            PolicyStore(mock_workspace_client).delete_policy("p", "CATALOG", "prod")
        assert mock_workspace_client.api_client.do.call_count == 1


class TestQuota:
    def test_quotas(self):
        assert POLICY_QUOTAS == {
            SecurableType.CATALOG: 10,
            SecurableType.SCHEMA: 10,
            SecurableType.TABLE: 5,
        }

    def test_counts_direct_policies_only(self, mock_workspace_client):
        mock_workspace_client.api_client.do.return_value = {
            "policies": [_policy(str(i)) for i in range(3)]
        }
        quota = PolicyStore(mock_workspace_client).check_quota("TABLE", "a.b.c")
        assert quota == {
            "securable_type": "TABLE",
            "securable_fullname": "a.b.c",
            "current": 3,
            "max": 5,
            "remaining": 2,
            "can_create": True,
        }
        query = mock_workspace_client.api_client.do.call_args.kwargs["query"]
        assert query["include_inherited"] == "false"

    def test_full_securable(self, mock_workspace_client):
        mock_workspace_client.api_client.do.return_value = {
            "policies": [_policy(str(i)) for i in range(6)]
        }
        quota = PolicyStore(mock_workspace_client).check_quota("TABLE", "a.b.c")
        assert quota["remaining"] == 0
        assert quota["can_create"] is False


class TestListFunctions:
    def test_maps_function_info(self, mock_workspace_client):
        param = MagicMock()
        param.name = "ssn"
        fn = MagicMock(
            full_name="prod.finance.mask_ssn",
            full_data_type="STRING",
            comment="last four",
        )
        fn.input_params.parameters = [param]
        mock_workspace_client.functions.list.return_value = [fn]

        functions = PolicyStore(mock_workspace_client).list_functions("prod", "finance")
        assert functions == [
            {
                "full_name": "prod.finance.mask_ssn",
                "returns": "STRING",
                "parameters": ["ssn"],
                "comment": "last four",
            }
        ]
        mock_workspace_client.functions.list.assert_called_once_with(
            catalog_name="prod", schema_name="finance"
        )

    def test_function_without_params(self, mock_workspace_client):
        fn = MagicMock(full_name="prod.gov.always", full_data_type="BOOLEAN", comment=None)
        fn.input_params = None
        mock_workspace_client.functions.list.return_value = [fn]
        functions = PolicyStore(mock_workspace_client).list_functions("prod", "gov")
        assert functions[0]["parameters"] == []
