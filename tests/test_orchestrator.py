import json

from contrail.classify.outcome import OutcomeClass
from contrail.config import Settings
from contrail.domain.models import RealResponse, Transaction, TransactionRequest
from contrail.orchestrator.hooks import Stage, TransactionOrchestrator


def txn(name: str, method: str, uri: str, body: str = "", headers=None) -> Transaction:
    return Transaction(
        name=name,
        request=TransactionRequest(method=method, uri=uri, headers=headers or {}, body=body),
    )


def respond(t: Transaction, status: int, body) -> Transaction:
    t.real = RealResponse(status_code=status, body=body if isinstance(body, str) else json.dumps(body))
    return t


def make(registry, **overrides) -> TransactionOrchestrator:
    return TransactionOrchestrator(registry, settings=Settings(_env_file=None, **overrides))


def test_full_run_threads_state_between_transactions(registry):
    orch = make(registry)

    # 1. register
    reg = txn("/auth/register > User registration > 201 > application/json", "POST", "/auth/register")
    prep = orch.before_each(reg)
    sent = json.loads(reg.request.body)
    assert set(sent) == {"email", "password", "first_name", "last_name"}
    assert Stage.PAYLOAD_SYNTHESIZED in prep.stages
    orch.after_each(respond(reg, 201, {"id": 1, "email": sent["email"]}), prep)
    assert orch.state.registered_credentials.email == sent["email"]
    assert prep.stage is Stage.DONE

    # 2. conflict replays the registration
    dup = txn("/auth/register > User registration > 409", "POST", "/auth/register")
    orch.before_each(dup)
    assert json.loads(dup.request.body) == sent

    # 3. login mirrors the registration and yields a token
    login = txn("/auth/login > User login > 200 > application/json", "POST", "/auth/login")
    orch.before_each(login)
    assert json.loads(login.request.body) == {"email": sent["email"], "password": sent["password"]}
    orch.after_each(respond(login, 200, {"token": "jwt-123"}))
    assert orch.state.auth_token == "jwt-123"

    # 4. protected call gets the token
    profile = txn("/api/profile > Get user profile > 200 > application/json", "GET", "/api/profile")
    prep = orch.before_each(profile)
    assert profile.request.headers["Authorization"] == "Bearer jwt-123"
    assert prep.auth == "token"

    # 5. create an order, then cancel it
    order = txn("/api/orders > Create new order > 201 > application/json", "POST", "/api/orders")
    orch.before_each(order)
    assert 50 <= json.loads(order.request.body)["total"] <= 500
    orch.after_each(respond(order, 201, {"id": 77, "total": 99.99}))

    cancel = txn("/api/orders/{id} > Cancel order > 200 > application/json", "DELETE", "/api/orders/1")
    prep = orch.before_each(cancel)
    assert cancel.request.uri == "/api/orders/77"
    assert cancel.full_path == "/api/orders/77"
    assert Stage.TARGET_REWRITTEN in prep.stages


def test_unauthorized_outcome_injects_invalid_token(registry):
    orch = make(registry)
    orch.state.auth_token = "real-token"
    t = txn("/api/profile > Get user profile > 401", "GET", "/api/profile")
    prep = orch.before_each(t)
    assert t.request.headers["Authorization"] == "Bearer invalid-token"
    assert prep.auth == "invalid"
    assert prep.outcome is OutcomeClass.UNAUTHORIZED


def test_missing_token_leaves_request_unauthenticated(registry):
    orch = make(registry)
    t = txn("/api/orders > Get user orders > 200 > application/json", "GET", "/api/orders")
    prep = orch.before_each(t)
    assert "Authorization" not in t.request.headers
    assert prep.auth == "missing"
    assert Stage.AUTH_INJECTED not in prep.stages


def test_public_endpoint_gets_no_auth(registry):
    orch = make(registry)
    orch.state.auth_token = "real-token"
    t = txn("/api/products > Get all products > 200 > application/json", "GET", "/api/products")
    prep = orch.before_each(t)
    assert t.request.headers == {}
    assert prep.auth == "not_required"


def test_custom_auth_header_and_prefix(registry):
    orch = make(registry, auth_header_name="X-API-Key", auth_token_prefix="")
    orch.state.auth_token = "k"
    t = txn("/api/profile > Get user profile > 200", "GET", "/api/profile")
    orch.before_each(t)
    assert t.request.headers == {"X-API-Key": "k"}


def test_login_without_registration_uses_fallback_pair(registry):
    orch = make(registry)
    t = txn("/auth/login > User login > 200 > application/json", "POST", "/auth/login")
    orch.before_each(t)
    assert json.loads(t.request.body) == {"email": "fallback@example.com", "password": "fallbackpassword"}

    bad = txn("/auth/login > User login > 401", "POST", "/auth/login")
    orch.before_each(bad)
    assert json.loads(bad.request.body) == {"email": "nonexistent@example.com", "password": "wrongpassword"}


def test_bad_request_body_is_fully_replaced(registry):
    orch = make(registry)
    t = txn("/api/orders > Create new order > 400", "POST", "/api/orders", body='{"total": 99.99, "extra": 1}')
    orch.before_each(t)
    assert json.loads(t.request.body) == {"total": -999}
    assert t.request.uri == "/api/orders"


def test_unknown_endpoint_is_left_alone(registry):
    orch = make(registry)
    t = txn("/nope > Whatever > 200", "POST", "/nope", body='{"keep": true}')
    prep = orch.before_each(t)
    assert prep.endpoint is None
    assert t.request.body == '{"keep": true}'
    assert prep.stages == [Stage.PENDING, Stage.DISPATCHED]


def test_not_found_and_server_error_rewrites(registry):
    orch = make(registry)
    product = txn("/api/products/{id} > Get product by ID > 404", "GET", "/api/products/1")
    orch.before_each(product)
    assert product.request.uri == "/api/products/999999"

    profile = txn("/api/profile > Get user profile > 404", "GET", "/api/profile")
    orch.before_each(profile)
    assert profile.request.uri == "/api/profile?simulate=404"

    products = txn("/api/products > Get all products > 500", "GET", "/api/products")
    orch.before_each(products)
    assert products.request.uri == "/api/products?simulate=500"


def test_error_simulation_can_be_disabled(registry):
    orch = make(registry, enable_error_simulation=False)
    t = txn("/api/products > Get all products > 500", "GET", "/api/products")
    prep = orch.before_each(t)
    assert t.request.uri == "/api/products"
    assert prep.rewrite is None


def test_dynamic_data_generation_can_be_disabled(registry):
    orch = make(registry, enable_dynamic_data_generation=False)
    t = txn("/api/orders > Create new order > 201", "POST", "/api/orders", body='{"total": 1}')
    orch.before_each(t)
    assert t.request.body == '{"total": 1}'


def test_skip_all_and_skip_patterns(registry):
    orch = make(registry, auto_skip_tests=True)
    t = txn("/api/profile > Get user profile > 401", "GET", "/api/profile")
    prep = orch.before_each(t)
    assert t.skip is True
    assert prep.skipped
    assert t.request.headers == {}

    orch = make(registry, skip_patterns=["*> 500*", "/auth/*"])
    assert orch.should_skip("/api/products > Get all products > 500")
    assert orch.should_skip("/auth/login > User login > 200")
    assert not orch.should_skip("/api/products > Get all products > 200")


def test_after_each_tolerates_missing_and_garbage_responses(registry):
    orch = make(registry)
    t = txn("/auth/login > User login > 200", "POST", "/auth/login")
    report = orch.after_each(t)
    assert not report.captured_anything

    respond(t, 200, "not json at all")
    report = orch.after_each(t)
    assert report.token.error.kind == "not_json"
    assert orch.state.auth_token is None


def test_wire_hooks_mutate_runner_dicts(registry):
    orch = make(registry)
    event = {
        "name": "/api/products > Get all products > 500",
        "request": {"method": "GET", "uri": "/api/products", "headers": {}, "body": ""},
        "fullPath": "/api/products",
    }
    orch.before_each_wire(event)
    assert event["request"]["uri"] == "/api/products?simulate=500"
    assert event["fullPath"] == "/api/products?simulate=500"

    login = {
        "name": "/auth/login > User login > 200",
        "request": {"method": "POST", "uri": "/auth/login", "headers": {}, "body": "{}"},
        "real": {"statusCode": 200, "body": json.dumps({"data": {"token": "w"}})},
    }
    orch.after_each_wire(login)
    assert orch.state.auth_token == "w"

    assert not orch.after_each_wire({"name": "broken"}).captured_anything


def test_from_settings_loads_contract_file(contract_file):
    settings = Settings(_env_file=None, openapi_schema_path=str(contract_file), enable_auto_discovery=True)
    orch = TransactionOrchestrator.from_settings(settings)
    assert len(orch.registry) == 10
    assert orch.registry.login_path == "/auth/login"
    assert orch.state.auth_token is None


def test_configured_id_fields_extend_builtin_ones(registry):
    orch = make(registry)
    order = txn("/api/orders > Create new order > 201", "POST", "/api/orders")
    orch.after_each(respond(order, 201, {"pk": 5}))
    assert orch.state.resource_id("orders", "65") == "5"

    orch = make(registry, auto_detect_id_fields=False)
    orch.after_each(respond(order, 201, {"pk": 5}))
    assert orch.state.resource_id("orders", "65") == "65"


def test_login_with_cookie_header_list_still_captures_token(registry):
    orch = make(registry)
    event = {
        "name": "/auth/login > User login > 200 > application/json",
        "request": {"method": "POST", "uri": "/auth/login", "headers": {}, "body": "{}"},
        "real": {
            "statusCode": 200,
            "headers": {"set-cookie": ["sid=abc; Path=/", "theme=dark"], "content-type": "application/json"},
            "body": json.dumps({"token": "jwt-1"}),
        },
    }
    report = orch.after_each_wire(event)
    assert report.token.value == "jwt-1"
    assert orch.state.auth_token == "jwt-1"


def test_odd_non_essential_fields_do_not_block_capture(registry):
    orch = make(registry)
    event = {
        "name": "/api/orders > Create new order > 201",
        "request": {"method": "POST", "uri": "/api/orders", "headers": "not-a-map", "body": "{}"},
        "real": {"statusCode": 201, "headers": None, "body": json.dumps({"id": 12})},
        "skip": "sometimes",
    }
    orch.after_each_wire(event)
    assert orch.state.resource_id("orders", "65") == "12"


def test_before_each_wire_keeps_runner_keys(registry):
    orch = make(registry)
    event = {
        "name": "/api/products > Get all products > 500",
        "origin": {"resourceName": "/api/products"},
        "request": {"method": "GET", "uri": "/api/products", "headers": {}, "body": "", "bodyEncoding": "utf-8"},
        "expected": {"statusCode": "500"},
    }
    orch.before_each_wire(event)
    assert event["request"] == {
        "method": "GET",
        "uri": "/api/products?simulate=500",
        "headers": {},
        "body": "",
        "bodyEncoding": "utf-8",
    }
    assert event["origin"] == {"resourceName": "/api/products"}
    assert event["expected"] == {"statusCode": "500"}
    assert event["fullPath"] == "/api/products?simulate=500"
