"""
Tests for the cacher HTTP service.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_cacher.app.main import CacherService
from shared.config import CacherConfig
from shared.pool import StorePool
from shared.test_helpers import InMemoryStore


@pytest.fixture
def store():
    """Create an in-memory store."""
    return InMemoryStore()


@pytest.fixture
def service(store):
    """Create a cacher service wired to the in-memory store."""
    config = CacherConfig(store_addr="localhost:6379", bind_addr=":8080", cache_ttl_seconds=120)
    pool = StorePool(config.store_url, size=2, dialer=store.connect)
    return CacherService(config=config, pool=pool)


@pytest.fixture
def client(service):
    """Test client with startup and shutdown hooks run."""
    with TestClient(service.app) as test_client:
        yield test_client


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "cacher"
    assert data["default_ttl_seconds"] == 120


def test_set_then_get(client, store):
    """Keys set together read back in query order."""
    response = client.post("/set", content=b'{"a": "1", "b": "2"}')

    assert response.status_code == 200
    assert response.text == "a set to 1\nb set to 2\n"
    assert store.ttls == {"a": 120, "b": 120}

    response = client.get("/get", params=[("key", "b"), ("key", "a")])

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "b = 2\na = 1\n"


def test_get_reports_missing_keys_inline(client):
    """A miss is one line of the response, not an error."""
    client.post("/set", content=b'{"present": "yes"}')

    response = client.get("/get", params=[("key", "present"), ("key", "absent")])

    assert response.status_code == 200
    assert response.text == "present = yes\nabsent not found\n"


def test_get_without_keys(client):
    response = client.get("/get")

    assert response.status_code == 200
    assert response.text == ""


def test_expired_key_reads_as_missing(client, store):
    client.post("/set", content=b'{"session": "abc"}')
    store.expire("session")

    response = client.get("/get", params={"key": "session"})

    assert response.text == "session not found\n"


@pytest.mark.parametrize("body,message", [
    (b"", "Request contained no body"),
    (b"{not json", "Error unmarshaling json payload"),
    (b'["a", "b"]', "Expected a JSON object of key/value strings"),
    (b'{"a": 1}', "All values must be strings"),
])
def test_set_rejects_bad_body(client, store, body, message):
    """Malformed bodies are a 400 and write nothing."""
    response = client.post("/set", content=body)

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "PROTOCOL_DECODING_ERROR"
    assert data["message"] == message
    assert data["request_id"] == response.headers["X-Request-ID"]
    assert store.values == {}


def test_store_rejection_is_400(client, store):
    store.fail_next("GET", ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value"))

    response = client.get("/get", params={"key": "a-list"})

    assert response.status_code == 400
    assert response.json()["code"] == "STORE_COMMAND_ERROR"
    assert response.json()["details"]["command"] == "GET"


def test_lost_connection_is_503(client, store):
    store.fail_next("SET", RedisConnectionError("Connection reset by peer"))

    response = client.post("/set", content=b'{"a": "1"}')

    assert response.status_code == 503
    assert response.json()["code"] == "STORE_CONNECTION_ERROR"


def test_partial_set_reports_applied_keys(client, store):
    """Keys before a failure stay written; the response says which."""
    store.fail_next("SET", ResponseError("OOM command not allowed when used memory > 'maxmemory'"), after=1)

    response = client.post("/set", content=b'{"a": "1", "b": "2", "c": "3"}')

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "PARTIAL_WRITE"
    assert data["details"]["applied"] == ["a"]
    assert data["details"]["failed"] == "b"
    assert set(store.values) == {"a"}


def test_request_id_is_echoed(client):
    response = client.get("/get", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["dependencies"] == {"store": "ok"}
    assert data["pool"]["size"] == 2
    assert data["pool"]["in_use"] == 0


def test_health_reports_unreachable_store(client, store):
    """Health stays up and reports the store as down."""
    store.fail_next("PING", RedisConnectionError("Connection refused"))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["dependencies"] == {"store": "error"}


def test_metrics(client):
    client.post("/set", content=b'{"a": "1"}')
    client.get("/get", params=[("key", "a"), ("key", "b")])

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "cache_hits_total 1.0" in response.text
    assert "cache_misses_total 1.0" in response.text
    assert 'store_commands_total{command="SET",outcome="ok"} 1.0' in response.text


def test_startup_fails_when_store_unreachable(service, store):
    """The service refuses to start against an unreachable store."""
    store.unreachable = True

    with pytest.raises(Exception):
        with TestClient(service.app):
            pass


def test_shutdown_drains_pool(service, store):
    with TestClient(service.app) as test_client:
        test_client.get("/get", params={"key": "a"})

    assert service.pool.closed
    assert store.open_connections == 0


def test_run_serves_on_bind_addr(service):
    with patch("uvicorn.run") as mock_run:
        service.run()

    mock_run.assert_called_once_with(service.app, host="0.0.0.0", port=8080, log_level="info")
