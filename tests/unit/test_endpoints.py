"""Tests for endpoint definitions, body templates, and the auth flow."""

from __future__ import annotations

from datetime import date

import pytest

from rampforge._internal.errors import ConfigurationError
from rampforge.dsl.endpoints import (
    DEFAULT_AUTH_FLOW,
    DEFAULT_ENDPOINTS,
    AuthFlow,
    EndpointSpec,
    render_body,
)


class TestEndpointSpec:
    def test_method_upper_cased(self) -> None:
        assert EndpointSpec(path="/a", method="post").method == "POST"

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="method"):
            EndpointSpec(path="/a", method="FETCH")

    @pytest.mark.parametrize("weight", [0, -3])
    def test_non_positive_weight_rejected(self, weight: int) -> None:
        with pytest.raises(ConfigurationError, match="weight"):
            EndpointSpec(path="/a", weight=weight)

    def test_fractional_weight_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="integer"):
            EndpointSpec(path="/a", weight=1.5)  # type: ignore[arg-type]

    def test_empty_path_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="path"):
            EndpointSpec(path="")

    def test_label_defaults_to_method_and_path(self) -> None:
        assert EndpointSpec(path="/health").label == "GET /health"
        assert EndpointSpec(path="/health", name="Health").label == "Health"

    def test_from_dict(self) -> None:
        endpoint = EndpointSpec.from_dict(
            {
                "path": "/api/items",
                "method": "put",
                "weight": 3,
                "body": {"a": 1},
                "headers": {"X-Trace": 1},
            }
        )
        assert endpoint.method == "PUT"
        assert endpoint.weight == 3
        assert endpoint.body == {"a": 1}
        assert endpoint.headers == {"X-Trace": "1"}

    def test_from_dict_missing_path(self) -> None:
        with pytest.raises(ConfigurationError, match="path"):
            EndpointSpec.from_dict({"method": "GET"})

    def test_from_dict_unknown_key(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown"):
            EndpointSpec.from_dict({"path": "/a", "wieght": 2})

    def test_from_dict_headers_must_be_object(self) -> None:
        with pytest.raises(ConfigurationError, match="headers"):
            EndpointSpec.from_dict({"path": "/a", "headers": ["x"]})

    def test_from_dict_rejects_non_object(self) -> None:
        with pytest.raises(ConfigurationError, match="object"):
            EndpointSpec.from_dict("path-ish")  # type: ignore[arg-type]

    def test_body_must_be_json_serialisable(self) -> None:
        with pytest.raises(ConfigurationError, match="JSON"):
            EndpointSpec(path="/a", method="POST", body={"when": date(2024, 1, 1)})  # type: ignore[dict-item]


class TestDefaults:
    def test_default_table_weights(self) -> None:
        assert [(ep.method, ep.path, ep.weight) for ep in DEFAULT_ENDPOINTS] == [
            ("GET", "/health", 5),
            ("GET", "/api/docs", 3),
            ("POST", "/api/auth/login", 2),
        ]

    def test_default_auth_flow_registers_then_logs_in(self) -> None:
        assert DEFAULT_AUTH_FLOW.register is not None
        assert DEFAULT_AUTH_FLOW.register.path == "/api/auth/register"
        assert DEFAULT_AUTH_FLOW.login.path == "/api/auth/login"


class TestRenderBody:
    def test_nested_placeholders(self) -> None:
        template = {
            "email": "test$user_tag@loadtest.com",
            "tags": ["u$user_id", 5],
            "profile": {"name": "User ${user_id}"},
            "active": True,
        }
        rendered = render_body(template, {"user_id": 3, "user_tag": "ab12"})
        assert rendered == {
            "email": "testab12@loadtest.com",
            "tags": ["u3", 5],
            "profile": {"name": "User 3"},
            "active": True,
        }

    def test_unknown_placeholder_left_in_place(self) -> None:
        assert render_body("$missing-$user_id", {"user_id": 1}) == "$missing-1"

    def test_none_passes_through(self) -> None:
        assert render_body(None, {"user_id": 1}) is None

    def test_template_not_mutated(self) -> None:
        template = {"email": "$user_tag"}
        render_body(template, {"user_tag": "x"})
        assert template == {"email": "$user_tag"}


class TestAuthFlow:
    def test_extract_token_field_order(self) -> None:
        flow = AuthFlow(login=EndpointSpec(path="/login", method="POST"))
        assert flow.extract_token({"token": "a", "accessToken": "b"}) == "a"
        assert flow.extract_token({"accessToken": "b"}) == "b"
        assert flow.extract_token({"access_token": "c"}) == "c"

    def test_extract_token_ignores_bad_payloads(self) -> None:
        flow = AuthFlow(login=EndpointSpec(path="/login", method="POST"))
        assert flow.extract_token(None) is None
        assert flow.extract_token(["token"]) is None
        assert flow.extract_token({"token": ""}) is None
        assert flow.extract_token({"token": 42}) is None

    def test_custom_token_field(self) -> None:
        flow = AuthFlow.from_dict(
            {"login": {"path": "/login", "method": "POST"}, "token_fields": "jwt"}
        )
        assert flow.token_fields == ("jwt",)
        assert flow.extract_token({"jwt": "t"}) == "t"

    def test_from_dict_requires_login(self) -> None:
        with pytest.raises(ConfigurationError, match="login"):
            AuthFlow.from_dict({"register": {"path": "/r"}})

    @pytest.mark.parametrize("token_fields", [5, ["token", 3], {"a": "b"}])
    def test_from_dict_bad_token_fields(self, token_fields: object) -> None:
        with pytest.raises(ConfigurationError, match="token_fields"):
            AuthFlow.from_dict({"login": {"path": "/login"}, "token_fields": token_fields})

    def test_empty_token_fields_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            AuthFlow(login=EndpointSpec(path="/login"), token_fields=())
