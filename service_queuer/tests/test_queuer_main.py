"""
Tests for the queuer HTTP service.
"""

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_queuer.app.main import QueuerService
from shared.config import QueuerConfig
from shared.pool import StorePool
from shared.test_helpers import InMemoryStore


@pytest.fixture
def store():
    """Create an in-memory store."""
    return InMemoryStore()


@pytest.fixture
def service(store):
    """Create a queuer service wired to the in-memory store."""
    config = QueuerConfig(store_addr="localhost:6379", bind_addr=":8081", queue_name="jobs")
    pool = StorePool(config.store_url, size=2, dialer=store.connect)
    return QueuerService(config=config, pool=pool)


@pytest.fixture
def client(service):
    """Test client with startup and shutdown hooks run."""
    with TestClient(service.app) as test_client:
        yield test_client


def test_root(client):
    data = client.get("/").json()

    assert data["service"] == "queuer"
    assert data["queue"] == "jobs"


def test_push_then_pop_in_order(client, store):
    response = client.post("/push", content=b'["x", "y"]')

    assert response.status_code == 200
    assert response.text == "x pushed\ny pushed\n"
    assert list(store.lists["jobs"]) == ["x", "y"]

    assert client.get("/pop").text == "x\n"
    assert client.get("/pop").text == "y\n"


def test_pop_empty_queue(client, store):
    """An empty queue is a 400 with its own code and changes nothing."""
    response = client.get("/pop")

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "QUEUE_EMPTY"
    assert data["details"] == {"queue": "jobs"}
    assert not store.lists.get("jobs")


def test_push_empty_array(client, store):
    response = client.post("/push", content=b"[]")

    assert response.status_code == 200
    assert response.text == ""
    assert not store.lists.get("jobs")


@pytest.mark.parametrize("body", [b"", b"not json", b'{"a": "b"}', b'["ok", 3]'])
def test_push_rejects_bad_body(client, store, body):
    response = client.post("/push", content=body)

    assert response.status_code == 400
    assert response.json()["code"] == "PROTOCOL_DECODING_ERROR"
    assert not store.lists.get("jobs")


def test_pop_store_rejection(client, store):
    store.fail_next("LPOP", ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value"))

    response = client.get("/pop")

    assert response.status_code == 400
    assert response.json()["code"] == "STORE_COMMAND_ERROR"


def test_pop_connection_lost_is_400(client, store):
    """Every failed pop is a 400; the code still says what went wrong."""
    client.post("/push", content=b'["kept"]')
    store.fail_next("LPOP", RedisConnectionError("Connection reset by peer"))

    response = client.get("/pop")

    assert response.status_code == 400
    assert response.json()["code"] == "STORE_CONNECTION_ERROR"
    assert list(store.lists["jobs"]) == ["kept"]


def test_pop_pool_exhausted_is_400(store):
    config = QueuerConfig(store_addr="localhost:6379", bind_addr=":8081", queue_name="jobs")
    pool = StorePool(config.store_url, size=1, acquire_timeout=0.01, dialer=store.connect)
    service = QueuerService(config=config, pool=pool)

    with TestClient(service.app) as test_client:
        held = test_client.portal.call(pool.acquire)
        response = test_client.get("/pop")
        test_client.portal.call(pool.release, held)

    assert response.status_code == 400
    assert response.json()["code"] == "POOL_EXHAUSTED"


def test_push_connection_lost(client, store):
    store.fail_next("RPUSH", RedisConnectionError("Connection reset by peer"))

    response = client.post("/push", content=b'["a"]')

    assert response.status_code == 503


def test_partial_push(client, store):
    store.fail_next("RPUSH", ResponseError("OOM command not allowed when used memory > 'maxmemory'"), after=1)

    response = client.post("/push", content=b'["a", "b"]')

    assert response.status_code == 400
    assert response.json()["details"]["applied"] == ["a"]
    assert list(store.lists["jobs"]) == ["a"]


def test_health(client):
    data = client.get("/health").json()

    assert data["service"] == "queuer"
    assert data["dependencies"] == {"store": "ok"}
