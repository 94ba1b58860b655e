import json

from contrail.session.capture import CapturePolicy, capture_from_response, find_token, resolve_path
from contrail.session.state import SessionState


POLICY = CapturePolicy(
    login_path="/auth/login",
    register_path="/auth/register",
    token_field_patterns=("token", "access_token", "data.token", "result.auth.token"),
)


def test_resolve_path_descends_nested_objects():
    obj = {"data": {"token": "abc"}, "flat": 1}
    assert resolve_path(obj, "data.token") == "abc"
    assert resolve_path(obj, "flat") == 1
    assert resolve_path(obj, "data.missing.token") is None
    assert resolve_path(obj, "flat.deeper") is None
    assert resolve_path(None, "data") is None
    assert resolve_path(obj, "") is None


def test_find_token_takes_first_non_empty_pattern():
    response = {"token": "", "data": {"token": "nested-token"}}
    result = find_token(response, POLICY.token_field_patterns)
    assert result.is_ok
    assert result.value == "nested-token"

    assert not find_token({"nothing": 1}, POLICY.token_field_patterns).is_ok


def test_login_response_captures_token():
    state = SessionState()
    report = capture_from_response(
        state, POLICY, "POST", 200, json.dumps({"result": {"auth": {"token": "t-1"}}}), "/auth/login"
    )
    assert report.token.is_ok
    assert state.auth_token == "t-1"


def test_token_not_captured_from_unrelated_endpoint():
    state = SessionState()
    report = capture_from_response(state, POLICY, "POST", 200, json.dumps({"token": "x"}), "/api/orders")
    assert not report.token.is_ok
    assert report.token.error.kind == "not_applicable"
    assert state.auth_token is None


def test_token_only_configured_field_when_detection_disabled():
    policy = CapturePolicy(
        login_path="/auth/login",
        register_path="/auth/register",
        token_field_patterns=("token", "jwt"),
        auth_token_field="jwt",
        auto_detect_token_fields=False,
    )
    state = SessionState()
    capture_from_response(state, policy, "POST", 200, json.dumps({"token": "a", "jwt": "b"}), "/auth/login")
    assert state.auth_token == "b"


def test_registration_captures_credentials_and_token():
    state = SessionState()
    sent = {"email": "new@example.com", "password": "pw", "first_name": "New", "last_name": "User"}
    report = capture_from_response(
        state,
        POLICY,
        "POST",
        201,
        json.dumps({"token": "reg-token", "user": {"id": 3}}),
        "/auth/register",
        request_body=json.dumps(sent),
    )
    assert report.credentials.is_ok
    creds = state.registered_credentials
    assert (creds.email, creds.password, creds.first_name, creds.last_name) == (
        "new@example.com", "pw", "New", "User",
    )
    assert state.auth_token == "reg-token"


def test_creation_response_captures_resource_id():
    state = SessionState()
    report = capture_from_response(state, POLICY, "POST", 201, json.dumps({"id": 7}), "/orders")
    assert report.resource_id.value == ("orders", "7")
    assert state.resource_id("orders", fallback="65") == "7"


def test_resource_id_falls_back_when_nothing_created():
    state = SessionState()
    assert state.resource_id("orders", fallback="65") == "65"
    assert state.resource_id(None, fallback="65") == "65"


def test_resource_id_uses_first_present_id_field_and_latest_wins():
    state = SessionState()
    capture_from_response(state, POLICY, "POST", 201, json.dumps({"_id": "abc", "uuid": "u"}), "/api/orders?x=1")
    assert state.captured_resource_ids == {"orders": "abc"}
    capture_from_response(state, POLICY, "POST", 201, json.dumps({"id": 12}), "/api/orders")
    assert state.captured_resource_ids == {"orders": "12"}


def test_capture_ignores_malformed_bodies():
    state = SessionState()
    report = capture_from_response(state, POLICY, "POST", 201, "<html>oops</html>", "/auth/register", request_body="{broken")
    assert report.token.error.kind == "not_json"
    assert report.credentials.error.kind == "not_json"
    assert report.resource_id.error.kind == "not_json"
    assert not report.captured_anything
    assert state == SessionState()


def test_capture_without_response_reports_misses():
    state = SessionState()
    report = capture_from_response(state, POLICY, "POST", None, None, "/auth/login")
    assert report.token.error.kind == "no_response"
    assert not report.captured_anything


def test_non_creation_status_captures_no_ids():
    state = SessionState()
    capture_from_response(state, POLICY, "POST", 200, json.dumps({"id": 5}), "/api/orders")
    capture_from_response(state, POLICY, "GET", 201, json.dumps({"id": 5}), "/api/orders")
    assert state.captured_resource_ids == {}
