"""Approval token generation and verification.

Token format: ``<hex HMAC-SHA256>:<base64(canonical JSON)>``

The JSON payload is the change parameters plus an integer ``timestamp``,
serialized with sorted keys so the same mapping always produces the same
bytes. The HMAC covers those bytes, which binds the token to the exact
parameters shown in the preview.
"""
import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from server.config import ApprovalConfig

TIMESTAMP_KEY = "timestamp"


class TokenFailure(str, Enum):
    """Internal reasons a token can be rejected. Never shown to callers."""

    MALFORMED_TOKEN = "malformed_token"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    PARAMETER_MISMATCH = "parameter_mismatch"


@dataclass(frozen=True)
class TokenCheck:
    """Result of verifying an approval token."""

    valid: bool
    failure: Optional[TokenFailure] = None
    detail: str = ""

    @classmethod
    def ok(cls) -> "TokenCheck":
        return cls(valid=True)

    @classmethod
    def fail(cls, failure: TokenFailure, detail: str) -> "TokenCheck":
        return cls(valid=False, failure=failure, detail=detail)


def _drop_nulls(params: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


def canonical_json(params: Mapping[str, Any]) -> str:
    """Serialize a mapping with sorted keys (stable across calls)."""
    return json.dumps(params, sort_keys=True)


class ApprovalTokenCodec:
    """Signs and verifies parameter-bound, time-limited approval tokens."""

    def __init__(
        self,
        approval_config: ApprovalConfig,
        clock: Callable[[], float] = time.time,
    ):
        self._secret = approval_config.secret
        self._ttl = approval_config.token_ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode(), hashlib.sha256).hexdigest()

    def encode(self, params: Mapping[str, Any]) -> str:
        """Issue a token for ``params``, stamped with the current time."""
        if TIMESTAMP_KEY in params:
            raise ValueError(f"'{TIMESTAMP_KEY}' is reserved for the token issue time")

        payload_data = _drop_nulls(params)
        payload_data[TIMESTAMP_KEY] = int(self._clock())
        payload = canonical_json(payload_data)

        signature = self._sign(payload)
        encoded = base64.b64encode(payload.encode()).decode("ascii")
        return f"{signature}:{encoded}"

    def decode_and_verify(
        self, token: str, expected_params: Mapping[str, Any]
    ) -> TokenCheck:
        """Check ``token`` against the parameters of the current call.

        Checks, in order: structure, signature, age, parameter binding.
        Reads the clock but has no other side effects.
        """
        if not isinstance(token, str) or ":" not in token:
            return TokenCheck.fail(TokenFailure.MALFORMED_TOKEN, "missing separator")

        signature, encoded = token.split(":", 1)
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            return TokenCheck.fail(TokenFailure.MALFORMED_TOKEN, "payload is not base64")
        # Non-canonical base64 (e.g. altered padding bits) decodes to the same
        # bytes, so require an exact round trip.
        if base64.b64encode(raw).decode("ascii") != encoded:
            return TokenCheck.fail(TokenFailure.MALFORMED_TOKEN, "non-canonical base64")
        try:
            payload = raw.decode("utf-8")
        except UnicodeDecodeError:
            return TokenCheck.fail(TokenFailure.MALFORMED_TOKEN, "payload is not UTF-8")

        expected_signature = self._sign(payload)
        if not hmac.compare_digest(
            signature.encode("utf-8", "replace"), expected_signature.encode("ascii")
        ):
            return TokenCheck.fail(TokenFailure.INVALID_TOKEN, "signature mismatch")

        try:
            token_data = json.loads(payload)
        except json.JSONDecodeError:
            return TokenCheck.fail(TokenFailure.MALFORMED_TOKEN, "payload is not JSON")
        if not isinstance(token_data, dict):
            return TokenCheck.fail(TokenFailure.MALFORMED_TOKEN, "payload is not an object")

        issued_at = token_data.pop(TIMESTAMP_KEY, None)
        if isinstance(issued_at, bool) or not isinstance(issued_at, (int, float)):
            return TokenCheck.fail(TokenFailure.MALFORMED_TOKEN, "missing timestamp")

        # Inclusive boundary: a token exactly ttl seconds old is still valid.
        age = self._clock() - issued_at
        if abs(age) > self._ttl:
            return TokenCheck.fail(
                TokenFailure.EXPIRED_TOKEN, f"token age {int(age)}s exceeds {self._ttl}s"
            )

        # Compared as canonical JSON so that true, 1 and 1.0 stay distinct.
        expected = json.loads(canonical_json(_drop_nulls(expected_params)))
        if canonical_json(token_data) != canonical_json(expected):
            differing = sorted(
                key
                for key in set(token_data) | set(expected)
                if key not in token_data
                or key not in expected
                or canonical_json({key: token_data[key]})
                != canonical_json({key: expected[key]})
            )
            return TokenCheck.fail(
                TokenFailure.PARAMETER_MISMATCH,
                f"fields differ from preview: {', '.join(differing)}",
            )

        return TokenCheck.ok()

