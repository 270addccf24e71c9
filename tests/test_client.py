"""Unit tests for client.py - Turso Platform API client."""

import asyncio
import json

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock

from client import TursoClient
from errors import NotFoundError, TransportError


def _response(status=200, body=None):
    """Build a mocked aiohttp response context manager."""
    mock_resp = MagicMock()
    mock_resp.status = status
    text = body if isinstance(body, str) else json.dumps(body) if body is not None else ""
    mock_resp.text = AsyncMock(return_value=text)
    return AsyncMock(
        __aenter__=AsyncMock(return_value=mock_resp),
        __aexit__=AsyncMock(return_value=False),
    )


def _client(*responses):
    session = MagicMock()
    session.request = MagicMock(side_effect=list(responses))
    client = TursoClient("test-token", base_url="https://api.example.com/", session=session)
    return client, session


@pytest.mark.asyncio
class TestTursoClientRequests:
    """Tests for the API operations."""

    async def test_create_database(self):
        client, session = _client(
            _response(
                200,
                {"database": {"DbId": "db-123", "Hostname": "orders-acme.turso.io", "Name": "orders"}},
            )
        )

        db = await client.create_database("acme", "orders", "default", size_limit="1gb")

        assert db.db_id == "db-123"
        assert db.hostname == "orders-acme.turso.io"
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url == "https://api.example.com/v1/organizations/acme/databases"
        assert session.request.call_args.kwargs["json"] == {
            "name": "orders",
            "group": "default",
            "size_limit": "1gb",
        }

    async def test_auth_header(self):
        client, session = _client(_response(200, {"tokens": []}))

        await client.list_api_tokens()

        headers = session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer test-token"

    async def test_get_database(self):
        client, session = _client(
            _response(
                200,
                {
                    "database": {
                        "Name": "orders",
                        "DbId": "db-123",
                        "Hostname": "orders-acme.turso.io",
                        "group": "default",
                        "is_schema": False,
                        "schema": "",
                        "regions": ["lhr"],
                    }
                },
            )
        )

        db = await client.get_database("acme", "orders")

        assert db.group == "default"
        assert db.schema_name is None
        assert session.request.call_args.args == (
            "GET",
            "https://api.example.com/v1/organizations/acme/databases/orders",
        )

    async def test_path_segments_are_quoted(self):
        client, session = _client(_response(200, ""))

        await client.revoke_api_token("ci token/1")

        assert session.request.call_args.args[1].endswith("/v1/auth/api-tokens/ci%20token%2F1")

    async def test_update_configuration_skips_none(self):
        client, session = _client(
            _response(200, {"size_limit": "1gb", "block_reads": True})
        )

        config = await client.update_database_configuration(
            "acme", "orders", size_limit="1gb", block_reads=True, allow_attach=None
        )

        assert config.block_reads is True
        assert session.request.call_args.args[0] == "PATCH"
        assert session.request.call_args.kwargs["json"] == {
            "size_limit": "1gb",
            "block_reads": True,
        }

    async def test_configuration_size_limit_as_string(self):
        client, _ = _client(_response(200, {"size_limit": 0}))

        config = await client.get_database_configuration("acme", "orders")

        assert config.size_limit == "0"

    async def test_create_database_token_params(self):
        client, session = _client(_response(200, {"jwt": "eyJ.token"}))

        token = await client.create_database_token(
            "acme", "orders", authorization="read-only"
        )

        assert token.jwt == "eyJ.token"
        assert session.request.call_args.kwargs["params"] == {"authorization": "read-only"}

    async def test_list_api_tokens(self):
        client, _ = _client(
            _response(200, {"tokens": [{"name": "ci", "id": 42}, {"name": "dev", "id": "x"}]})
        )

        tokens = await client.list_api_tokens()

        assert [(t.name, t.id) for t in tokens] == [("ci", "42"), ("dev", "x")]

    async def test_get_database_instance(self):
        client, _ = _client(
            _response(
                200,
                {
                    "instance": {
                        "uuid": "inst-1",
                        "name": "lhr",
                        "type": "replica",
                        "region": "lhr",
                        "hostname": "lhr-orders-acme.turso.io",
                    }
                },
            )
        )

        instance = await client.get_database_instance("acme", "orders", "lhr")

        assert instance.type == "replica"


@pytest.mark.asyncio
class TestTursoClientErrors:
    """Tests for error mapping."""

    async def test_not_found(self):
        client, _ = _client(_response(404, '{"error": "database not found"}'))

        with pytest.raises(NotFoundError) as exc_info:
            await client.get_database("acme", "orders")
        assert exc_info.value.status == 404
        assert "database not found" in exc_info.value.message

    async def test_server_error(self):
        client, _ = _client(_response(500, "internal error"))

        with pytest.raises(TransportError) as exc_info:
            await client.delete_database("acme", "orders")
        assert not isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.status == 500
        assert str(exc_info.value).startswith("HTTP 500: ")

    async def test_connection_error(self):
        session = MagicMock()
        session.request = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))
        client = TursoClient("t", session=session)

        with pytest.raises(TransportError, match="refused"):
            await client.list_api_tokens()

    async def test_timeout(self):
        session = MagicMock()
        session.request = MagicMock(side_effect=asyncio.TimeoutError())
        client = TursoClient("t", session=session)

        with pytest.raises(TransportError, match="timed out"):
            await client.list_api_tokens()

    async def test_invalid_json(self):
        client, _ = _client(_response(200, "<html>"))

        with pytest.raises(TransportError, match="invalid JSON"):
            await client.get_organization("acme")

    async def test_missing_envelope(self):
        client, _ = _client(_response(200, {"unexpected": {}}))

        with pytest.raises(TransportError, match="Empty Database"):
            await client.get_database("acme", "orders")

    async def test_unexpected_shape(self):
        client, _ = _client(
            _response(200, {"instance": {"uuid": "i", "name": "n", "type": "edge", "region": "r", "hostname": "h"}})
        )

        with pytest.raises(TransportError, match="Unexpected DatabaseInstance"):
            await client.get_database_instance("acme", "orders", "n")

    async def test_not_open(self):
        client = TursoClient("t")

        with pytest.raises(RuntimeError, match="not open"):
            await client.list_api_tokens()


@pytest.mark.asyncio
class TestTursoClientSession:
    """Tests for session ownership."""

    async def test_injected_session_not_closed(self):
        session = MagicMock()
        session.close = AsyncMock()
        client = TursoClient("t", session=session)

        async with client:
            pass

        session.close.assert_not_called()

    async def test_owned_session_closed(self):
        client = TursoClient("t")

        async with client:
            session = client._session
            assert isinstance(session, aiohttp.ClientSession)

        assert session.closed
        assert client._session is None
