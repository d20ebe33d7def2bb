"""Proposed FGAC policy changes.

A ChangeRequest describes one create, update or delete of a column-mask or
row-filter policy. The same object is built at preview time and again at
execute time from the current call's arguments; token_params() is the mapping
both sides bind into the approval token.
"""
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Optional, Sequence

from server.utils.errors import ChangeRequestError


class PolicyAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SecurableType(str, Enum):
    CATALOG = "CATALOG"
    SCHEMA = "SCHEMA"
    TABLE = "TABLE"


class PolicyType(str, Enum):
    COLUMN_MASK = "COLUMN_MASK"
    ROW_FILTER = "ROW_FILTER"


# Number of dotted name parts per securable type
_NAME_DEPTH: dict[SecurableType, int] = {
    SecurableType.CATALOG: 1,
    SecurableType.SCHEMA: 2,
    SecurableType.TABLE: 3,
}

_CREATE_ONLY_FIELDS = ("policy_type", "function_name", "tag_name", "tag_value")
_UPDATABLE_FIELDS = ("to_principals", "except_principals", "comment")
_ACTION_FIELDS = _CREATE_ONLY_FIELDS + _UPDATABLE_FIELDS
_NAME_FIELDS = (
    "policy_name",
    "securable_fullname",
    "function_name",
    "tag_name",
    "tag_value",
)


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ChangeRequestError(
            f"Invalid {field_name} '{value}'. Expected one of: {allowed}"
        ) from None


def _coerce_principals(value: Optional[Sequence[str]], field_name: str):
    if value is None:
        return None
    if isinstance(value, str):
        raise ChangeRequestError(f"{field_name} must be a list of principal names")
    principals = tuple(p.strip() for p in value)
    if any(not p for p in principals):
        raise ChangeRequestError(f"{field_name} contains an empty principal name")
    return principals


@dataclass(frozen=True)
class ChangeRequest:
    """An immutable, shape-validated policy change."""

    action: PolicyAction
    policy_name: str
    securable_type: SecurableType
    securable_fullname: str
    policy_type: Optional[PolicyType] = None
    function_name: Optional[str] = None
    to_principals: Optional[tuple[str, ...]] = None
    except_principals: Optional[tuple[str, ...]] = None
    tag_name: Optional[str] = None
    tag_value: Optional[str] = None
    comment: Optional[str] = None

    def __post_init__(self):
        normalized = {
            "action": _coerce_enum(PolicyAction, self.action, "action"),
            "securable_type": _coerce_enum(
                SecurableType, self.securable_type, "securable_type"
            ),
            "to_principals": _coerce_principals(self.to_principals, "to_principals"),
            "except_principals": _coerce_principals(
                self.except_principals, "except_principals"
            ),
        }
        # On CREATE an empty exemption list is the same as none at all;
        # only UPDATE gives [] a meaning (clear the exemptions).
        if (
            normalized["action"] == PolicyAction.CREATE
            and normalized["except_principals"] == ()
        ):
            normalized["except_principals"] = None
        if self.policy_type is not None:
            normalized["policy_type"] = _coerce_enum(
                PolicyType, self.policy_type, "policy_type"
            )
        for name in _NAME_FIELDS:
            value = getattr(self, name)
            if value is not None:
                normalized[name] = value.strip()

        # frozen dataclass: normalize in place once, before validation
        for name, value in normalized.items():
            object.__setattr__(self, name, value)

        self._validate()

    def _validate(self):
        if not self.policy_name:
            raise ChangeRequestError("policy_name is required")

        parts = self.securable_fullname.split(".") if self.securable_fullname else []
        depth = _NAME_DEPTH[self.securable_type]
        if len(parts) != depth or not all(parts):
            raise ChangeRequestError(
                f"securable_fullname '{self.securable_fullname}' is not a valid "
                f"{self.securable_type.value} name (expected {depth} dotted part(s))"
            )

        if self.action == PolicyAction.CREATE:
            missing = [
                name
                for name in ("policy_type", "function_name", "tag_name")
                if not getattr(self, name)
            ]
            if not self.to_principals:
                missing.append("to_principals")
            if missing:
                raise ChangeRequestError(
                    f"CREATE requires: {', '.join(missing)}"
                )

        elif self.action == PolicyAction.UPDATE:
            fixed = [n for n in _CREATE_ONLY_FIELDS if getattr(self, n) is not None]
            if fixed:
                raise ChangeRequestError(
                    f"UPDATE cannot change {', '.join(fixed)}; "
                    "delete and re-create the policy instead"
                )
            if all(getattr(self, n) is None for n in _UPDATABLE_FIELDS):
                raise ChangeRequestError(
                    "UPDATE requires at least one of: " + ", ".join(_UPDATABLE_FIELDS)
                )
            if self.to_principals is not None and not self.to_principals:
                raise ChangeRequestError("to_principals cannot be emptied by UPDATE")

        else:
            extra = [n for n in _ACTION_FIELDS if getattr(self, n) is not None]
            if extra:
                raise ChangeRequestError(
                    f"DELETE takes only the policy name and securable; got {', '.join(extra)}"
                )

    @property
    def scope(self) -> str:
        return f"{self.securable_type.value} {self.securable_fullname}"

    def updated_fields(self) -> list[str]:
        """Names of the fields an UPDATE changes, in API order."""
        return [n for n in _UPDATABLE_FIELDS if getattr(self, n) is not None]

    def token_params(self) -> dict[str, Any]:
        """The parameter set bound into the approval token."""
        params: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            params[f.name] = value
        return params
