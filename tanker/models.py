"""tanker models - the stored request shape and its validation rules."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from tanker.errors import ValidationError

METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
QUERY_METHODS = ("GET", "DELETE")
BODY_METHODS = ("POST", "PUT", "PATCH")

AUTH_TYPES = ("bearer", "basic", "api-key")
DEFAULT_API_KEY_HEADER = "X-API-Key"


def carries_body(method: str) -> bool:
    return method.upper() in BODY_METHODS


def json_type_name(value: Any) -> str:
    """Return the JSON type tag of a decoded value.

    One of: object, array, string, number, bool, null.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def parse_json_object(value: Any, field_name: str) -> dict[str, Any]:
    """Coerce a loosely-typed field into a JSON object.

    Accepts a dict, a JSON string holding an object, or an empty value
    (None / "" → {}). Anything else raises ValidationError.
    """
    if value is None:
        return {}
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Wrong input format for {field_name}: {e}") from e
    if not isinstance(value, dict):
        raise ValidationError(
            f"Wrong input format for {field_name}: expected a JSON object, "
            f"got {json_type_name(value)}",
        )
    return value


def check_string_params(params: dict[str, Any]) -> None:
    """Reject any query parameter whose value is not a string."""
    for key, value in params.items():
        if not isinstance(value, str):
            raise ValidationError(
                f"Wrong value type for param {key} : {json_type_name(value)}. "
                "Type must be a string",
            )


@dataclass
class Auth:
    """Authentication attached to a request.

    type is one of bearer, basic, api-key. Only the fields of that variant
    are meaningful.
    """

    type: str
    token: str = ""
    username: str = ""
    password: str = ""
    key: str = ""
    header: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"type": self.type}
        for name in ("token", "username", "password", "key", "header"):
            value = getattr(self, name)
            if value:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Auth | None:
        if not data:
            return None
        auth_type = str(data.get("type", "")).lower()
        if auth_type in ("", "none"):
            return None
        return cls(
            type=auth_type,
            token=str(data.get("token") or ""),
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            key=str(data.get("key") or ""),
            header=str(data.get("header") or ""),
        )


@dataclass
class Request:
    name: str
    method: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    payload: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, Any] = field(default_factory=dict)
    insecure: bool = False
    auth: Auth | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted JSON shape.

        Empty params/payload, a false insecure flag and a missing auth are
        omitted; headers are always written.
        """
        data: dict[str, Any] = {
            "name": self.name,
            "method": self.method,
            "url": self.url,
        }
        if self.params:
            data["params"] = self.params
        if self.payload:
            data["payload"] = self.payload
        data["headers"] = self.headers or {}
        if self.insecure:
            data["insecure"] = True
        if self.auth:
            data["auth"] = self.auth.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Request:
        """Build from stored data without validating it."""
        return cls(
            name=data.get("name", ""),
            method=str(data.get("method", "GET")).upper(),
            url=data.get("url", ""),
            params=data.get("params") or {},
            payload=data.get("payload") or {},
            headers=data.get("headers") or {},
            insecure=bool(data.get("insecure", False)),
            auth=Auth.from_dict(data.get("auth")),
        )


def validate_auth(data: Any) -> Auth | None:
    if data is None or isinstance(data, Auth):
        auth = data
    elif isinstance(data, dict):
        auth_type = str(data.get("type", "")).lower()
        if auth_type and auth_type != "none" and auth_type not in AUTH_TYPES:
            raise ValidationError(
                f"Unknown auth type {data.get('type')!r}. "
                f"Expected one of: none, {', '.join(AUTH_TYPES)}",
            )
        auth = Auth.from_dict(data)
    else:
        raise ValidationError(
            f"Wrong input format for auth: expected a JSON object, got {json_type_name(data)}",
        )

    if auth is None:
        return None
    if auth.type == "bearer" and not auth.token:
        raise ValidationError("Bearer auth requires a token")
    if auth.type == "basic" and not auth.username:
        raise ValidationError("Basic auth requires a username")
    if auth.type == "api-key":
        if not auth.key:
            raise ValidationError("API key auth requires a key")
        if not auth.header:
            auth.header = DEFAULT_API_KEY_HEADER
    return auth


def validate(draft: dict[str, Any]) -> Request:
    """Validate loosely-typed request data and build a Request.

    - name, method and url are required; method must be one of METHODS
    - params/payload/headers may be dicts or JSON strings
    - GET/DELETE: params values must all be strings; payload must be empty
    - POST/PUT/PATCH: payload must be a JSON object; params must be empty
    - absent optional fields become {} (never None)
    """
    name = str(draft.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    method = str(draft.get("method") or "").strip().upper()
    if method not in METHODS:
        raise ValidationError(
            f"Unsupported method {draft.get('method')!r}. Expected one of: {', '.join(METHODS)}",
        )

    url = str(draft.get("url") or "").strip()
    if not url:
        raise ValidationError("url is required")

    params = parse_json_object(draft.get("params"), "params")
    payload = parse_json_object(draft.get("payload"), "payload")
    headers = parse_json_object(draft.get("headers"), "headers")

    if method in QUERY_METHODS:
        check_string_params(params)
        if payload:
            raise ValidationError(f"payload is not allowed for {method} requests")
    elif params:
        raise ValidationError(f"params are not allowed for {method} requests")

    return Request(
        name=name,
        method=method,
        url=url,
        params=params,
        payload=payload,
        headers=headers,
        insecure=bool(draft.get("insecure", False)),
        auth=validate_auth(draft.get("auth")),
    )
