"""Endpoint table definitions: weighted endpoints and the optional auth flow."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from string import Template
from typing import TYPE_CHECKING, Any

from rampforge._internal.errors import ConfigurationError
from rampforge._internal.validation import _validate_int, _validate_positive

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rampforge._internal.types import BodyTemplate, Headers

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

DEFAULT_TOKEN_FIELDS = ("token", "accessToken", "access_token")


@dataclass(frozen=True)
class EndpointSpec:
    """A single weighted endpoint of the target service.

    Attributes:
        path: URL path appended to the run's base URL (e.g. ``/health``).
        method: HTTP method, upper-cased on construction.
        weight: Relative selection weight. Must be a positive integer.
        body: Optional JSON payload template. String values may contain
            ``$user_id`` and ``$user_tag`` placeholders, see
            :func:`render_body`.
        name: Label used to group metrics. Defaults to ``"METHOD path"``.
        headers: Extra headers sent with this endpoint only.

    Raises:
        ConfigurationError: If the method is unknown, the weight is not
            a positive integer, or the body cannot be encoded as JSON.
    """

    path: str
    method: str = "GET"
    weight: int = 1
    body: BodyTemplate = None
    name: str | None = None
    headers: Headers = field(default_factory=dict)

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in HTTP_METHODS:
            msg = f"Unsupported HTTP method {self.method!r} for {self.path!r}"
            raise ConfigurationError(msg)
        object.__setattr__(self, "method", method)
        _validate_int(self.weight, f"weight of {self.path!r}")
        _validate_positive(self.weight, f"weight of {self.path!r}")
        if not self.path:
            msg = "Endpoint path must not be empty"
            raise ConfigurationError(msg)
        if self.body is not None:
            try:
                json.dumps(self.body)
            except (TypeError, ValueError) as exc:
                msg = f"Body of {self.path!r} is not JSON-serialisable: {exc}"
                raise ConfigurationError(msg) from exc

    @property
    def label(self) -> str:
        """Return the metric grouping label for this endpoint."""
        return self.name or f"{self.method} {self.path}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EndpointSpec:
        """Build an endpoint from one entry of an endpoint table file.

        Args:
            data: Mapping with ``path`` and optional ``method``, ``weight``,
                ``body``, ``name`` and ``headers`` keys.

        Returns:
            The validated EndpointSpec.

        Raises:
            ConfigurationError: If ``path`` is missing or a value is invalid.
        """
        if not isinstance(data, dict):
            msg = f"Endpoint entry must be an object, got {type(data).__name__}: {data!r}"
            raise ConfigurationError(msg)
        if "path" not in data:
            msg = f"Endpoint entry is missing 'path': {data!r}"
            raise ConfigurationError(msg)
        unknown = set(data) - {"path", "method", "weight", "body", "name", "headers"}
        if unknown:
            msg = f"Unknown endpoint keys {sorted(unknown)} in entry for {data['path']!r}"
            raise ConfigurationError(msg)
        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            msg = f"'headers' of {data['path']!r} must be an object"
            raise ConfigurationError(msg)
        name = data.get("name")
        return cls(
            path=str(data["path"]),
            method=str(data.get("method", "GET")),
            weight=data.get("weight", 1),
            body=data.get("body"),
            name=str(name) if name is not None else None,
            headers={str(k): str(v) for k, v in headers.items()},
        )


@dataclass(frozen=True)
class AuthFlow:
    """One-time registration/login sequence run by each virtual user.

    Attributes:
        login: Endpoint whose JSON response carries the session token.
        register: Optional endpoint called before ``login``.
        token_fields: Response body keys checked, in order, for the token.
    """

    login: EndpointSpec
    register: EndpointSpec | None = None
    token_fields: tuple[str, ...] = DEFAULT_TOKEN_FIELDS

    def __post_init__(self) -> None:
        if not self.token_fields:
            msg = "AuthFlow.token_fields must name at least one field"
            raise ConfigurationError(msg)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuthFlow:
        """Build an auth flow from the ``auth`` section of an endpoint file.

        Raises:
            ConfigurationError: If ``login`` is missing or invalid.
        """
        if not isinstance(data, dict):
            msg = "The 'auth' section must be an object"
            raise ConfigurationError(msg)
        if "login" not in data:
            msg = "The 'auth' section requires a 'login' endpoint"
            raise ConfigurationError(msg)
        register = data.get("register")
        token_fields = data.get("token_fields")
        if isinstance(token_fields, str):
            token_fields = [token_fields]
        if token_fields is not None and (
            not isinstance(token_fields, list)
            or not all(isinstance(key, str) for key in token_fields)
        ):
            msg = "'auth.token_fields' must be a string or a list of strings"
            raise ConfigurationError(msg)
        return cls(
            login=EndpointSpec.from_dict(data["login"]),
            register=EndpointSpec.from_dict(register) if register else None,
            token_fields=tuple(token_fields) if token_fields else DEFAULT_TOKEN_FIELDS,
        )

    def extract_token(self, payload: object) -> str | None:
        """Return the session token from a decoded login response body.

        Args:
            payload: Decoded JSON body, or None if the body was not JSON.

        Returns:
            The first non-empty string found under ``token_fields``, or None.
        """
        if not isinstance(payload, dict):
            return None
        for key in self.token_fields:
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
        return None


def render_body(template: BodyTemplate, context: Mapping[str, object]) -> BodyTemplate:
    """Substitute ``$placeholders`` in every string of a body template.

    Dicts and lists are walked recursively; non-string scalars are returned
    unchanged. Unknown placeholders are left in place.

    Args:
        template: The payload template.
        context: Placeholder values, e.g. ``{"user_id": 3, "user_tag": "k2x9"}``.

    Returns:
        A new payload with placeholders rendered.
    """
    if isinstance(template, str):
        return Template(template).safe_substitute(context)
    if isinstance(template, dict):
        return {key: render_body(value, context) for key, value in template.items()}
    if isinstance(template, list):
        return [render_body(item, context) for item in template]
    return template


# Built-in table used when no endpoint file is given.
DEFAULT_ENDPOINTS: tuple[EndpointSpec, ...] = (
    EndpointSpec(path="/health", method="GET", weight=5),
    EndpointSpec(path="/api/docs", method="GET", weight=3),
    EndpointSpec(
        path="/api/auth/login",
        method="POST",
        weight=2,
        body={"email": "test@example.com", "password": "password123"},
    ),
)

DEFAULT_AUTH_FLOW = AuthFlow(
    register=EndpointSpec(
        path="/api/auth/register",
        method="POST",
        name="register",
        body={
            "email": "test$user_tag@loadtest.com",
            "password": "LoadTest123!",
            "firstName": "Test$user_tag",
            "lastName": "User",
        },
    ),
    login=EndpointSpec(
        path="/api/auth/login",
        method="POST",
        name="login",
        body={"email": "test$user_tag@loadtest.com", "password": "LoadTest123!"},
    ),
)
