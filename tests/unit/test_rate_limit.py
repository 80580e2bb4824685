from types import SimpleNamespace

from starlette.requests import Request

from app.core.rate_limit import DEFAULT_RETRY_AFTER, get_client_ip, retry_after_seconds


def make_request(headers=None, client=("10.0.0.9", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/auth/login",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_client_ip_prefers_forwarded_for():
    request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert get_client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_peer():
    assert get_client_ip(make_request()) == "10.0.0.9"


def test_retry_after_uses_the_limit_window():
    window = SimpleNamespace(limit=SimpleNamespace(get_expiry=lambda: 3600))
    assert retry_after_seconds(SimpleNamespace(limit=window)) == 3600
    assert retry_after_seconds(SimpleNamespace(limit=None)) == DEFAULT_RETRY_AFTER
