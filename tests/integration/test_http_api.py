"""
Integration tests for the VSS HTTP API.

Tests cover:
- Request/response bodies for all four operations
- Error code and status mapping
- Malformed bodies
"""

import base64
import contextlib
import sqlite3
import tempfile

import pytest
from aiohttp.test_utils import TestClient, TestServer

from vssd.vss_server.api import ERROR_STATUS, create_http_app
from vssd.vss_server.api.http_server import SERVICE_KEY
from vssd.vss_server.config import HttpConfig
from vssd.vss_server.engine import VssService
from vssd.vss_server.errors import ErrorCode
from vssd.vss_server.store import VersionedStore


def b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


@contextlib.asynccontextmanager
async def vss_client(default_page_size=100, max_page_size=1000, max_request_bytes=1024 * 1024):
    """Run the HTTP app against a temporary store."""
    with tempfile.TemporaryDirectory() as tmpdir:
        service = VssService(
            VersionedStore(tmpdir),
            default_page_size=default_page_size,
            max_page_size=max_page_size,
        )
        app = create_http_app(service, HttpConfig(max_request_bytes=max_request_bytes))
        async with TestClient(TestServer(app)) as client:
            yield client


async def put(client, store_id, items=(), deletes=(), global_version=None):
    body = {
        "store_id": store_id,
        "transaction_items": [
            {"key": k, "version": v, "value": b64(value)} for k, v, value in items
        ],
        "delete_items": [{"key": k, "version": v} for k, v in deletes],
    }
    if global_version is not None:
        body["global_version"] = global_version
    return await client.post("/vss/putObjects", json=body)


class TestErrorStatus:
    """Tests for the error code to status mapping."""

    def test_every_error_code_has_a_status(self):
        for code in ErrorCode:
            if code is ErrorCode.UNKNOWN:
                continue
            assert code in ERROR_STATUS


class TestHttpApi:
    """Tests for the HTTP handlers."""

    @pytest.mark.asyncio
    async def test_put_then_get(self):
        async with vss_client() as client:
            resp = await put(client, "s", [("k1", 0, b"\x00\xffA")], global_version=0)
            assert resp.status == 200
            assert await resp.json() == {}

            resp = await client.post("/vss/getObject", json={"store_id": "s", "key": "k1"})
            assert resp.status == 200
            data = await resp.json()
            assert data["value"]["key"] == "k1"
            assert data["value"]["version"] == 0
            assert base64.b64decode(data["value"]["value"]) == b"\x00\xffA"

    @pytest.mark.asyncio
    async def test_get_missing_key(self):
        async with vss_client() as client:
            resp = await client.post("/vss/getObject", json={"store_id": "s", "key": "nope"})
            assert resp.status == 404
            data = await resp.json()
            assert data["error_code"] == "NO_SUCH_KEY_EXCEPTION"
            assert data["message"]

    @pytest.mark.asyncio
    async def test_conflict(self):
        async with vss_client() as client:
            await put(client, "s", [("k1", 0, b"A")], global_version=0)

            resp = await put(client, "s", [("k1", 0, b"B")], global_version=0)

            assert resp.status == 409
            assert (await resp.json())["error_code"] == "CONFLICT_EXCEPTION"

    @pytest.mark.asyncio
    async def test_duplicate_keys_are_invalid(self):
        async with vss_client() as client:
            resp = await put(client, "s", [("k1", 0, b"A")], deletes=[("k1", -1)])

            assert resp.status == 400
            assert (await resp.json())["error_code"] == "INVALID_REQUEST_EXCEPTION"

    @pytest.mark.asyncio
    async def test_missing_store_id(self):
        async with vss_client() as client:
            resp = await client.post("/vss/getObject", json={"key": "k1"})

            assert resp.status == 400
            assert (await resp.json())["error_code"] == "INVALID_REQUEST_EXCEPTION"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b'{"store_id": 5, "key": "k"}',
            b'{"store_id": "s", "transaction_items": [{"key": "k", "version": "1"}]}',
            b'{"store_id": "s", "transaction_items": [{"key": "k", "value": "***"}]}',
        ],
    )
    async def test_malformed_bodies(self, body):
        async with vss_client() as client:
            resp = await client.post(
                "/vss/putObjects", data=body, headers={"Content-Type": "application/json"}
            )

            assert resp.status == 400
            assert (await resp.json())["error_code"] == "INVALID_REQUEST_EXCEPTION"

    @pytest.mark.asyncio
    async def test_delete_object_is_idempotent(self):
        async with vss_client() as client:
            await put(client, "s", [("k1", 0, b"A")])
            body = {"store_id": "s", "key_value": {"key": "k1", "version": 0}}

            first = await client.post("/vss/deleteObject", json=body)
            second = await client.post("/vss/deleteObject", json=body)

            assert first.status == 200
            assert second.status == 200
            resp = await client.post("/vss/getObject", json={"store_id": "s", "key": "k1"})
            assert resp.status == 404

    @pytest.mark.asyncio
    async def test_delete_object_requires_key_value(self):
        async with vss_client() as client:
            resp = await client.post("/vss/deleteObject", json={"store_id": "s"})

            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_list_key_versions_pages(self):
        async with vss_client(default_page_size=2) as client:
            await put(client, "s", [(f"k{i}", 0, b"v") for i in range(3)])

            resp = await client.post("/vss/listKeyVersions", json={"store_id": "s"})
            first = await resp.json()

            assert resp.status == 200
            assert first["global_version"] == 1
            assert first["key_versions"] == [
                {"key": "k0", "version": 0},
                {"key": "k1", "version": 0},
            ]
            assert first["next_page_token"]

            resp = await client.post(
                "/vss/listKeyVersions",
                json={"store_id": "s", "page_token": first["next_page_token"]},
            )
            second = await resp.json()

            assert "global_version" not in second
            assert second["key_versions"] == [{"key": "k2", "version": 0}]
            assert second["next_page_token"] == ""

    @pytest.mark.asyncio
    async def test_list_with_bad_token(self):
        async with vss_client() as client:
            resp = await client.post(
                "/vss/listKeyVersions", json={"store_id": "s", "page_token": "garbage"}
            )

            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_request_too_large(self):
        async with vss_client(max_request_bytes=1024) as client:
            resp = await put(client, "s", [("k1", -1, b"x" * 4096)])

            assert resp.status == 413
            data = await resp.json()
            assert data["error_code"] == "INVALID_REQUEST_EXCEPTION"
            assert data["message"]

    @pytest.mark.asyncio
    async def test_health(self):
        async with vss_client() as client:
            resp = await client.get("/health")

            assert resp.status == 200
            assert (await resp.json())["healthy"] is True

    @pytest.mark.asyncio
    async def test_unknown_route_has_error_code(self):
        async with vss_client() as client:
            resp = await client.post("/vss/nope", json={})

            assert resp.status == 404
            assert (await resp.json())["error_code"] == "INVALID_REQUEST_EXCEPTION"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path,body",
        [
            (
                "/vss/putObjects",
                {"store_id": "s", "transaction_items": [{"key": "k", "version": 2**63}]},
            ),
            ("/vss/putObjects", {"store_id": "s", "global_version": 2**70}),
            ("/vss/deleteObject", {"store_id": "s", "key_value": {"key": "k", "version": 2**63}}),
            ("/vss/listKeyVersions", {"store_id": "s", "page_size": 2**31}),
        ],
    )
    async def test_out_of_range_integers_are_invalid(self, path, body):
        async with vss_client() as client:
            resp = await client.post(path, json=body)

            assert resp.status == 400
            assert (await resp.json())["error_code"] == "INVALID_REQUEST_EXCEPTION"

    @pytest.mark.asyncio
    async def test_storage_failure_maps_to_internal_error(self):
        async with vss_client() as client:
            await put(client, "s", [("k1", 0, b"A")])
            store = client.server.app[SERVICE_KEY].store

            def broken_commit(store_id, mutate):
                raise sqlite3.OperationalError("disk I/O error")

            store._commit_sync = broken_commit
            resp = await put(client, "s", [("k1", 0, b"B")])

            assert resp.status == 500
            data = await resp.json()
            assert data["error_code"] == "INTERNAL_SERVER_EXCEPTION"
            assert "disk I/O error" not in data["message"]

            resp = await client.post("/vss/getObject", json={"store_id": "s", "key": "k1"})
            value = (await resp.json())["value"]
            assert value["version"] == 0
            assert base64.b64decode(value["value"]) == b"A"
