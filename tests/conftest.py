"""Pytest configuration and fixtures."""

import pytest
from unittest.mock import AsyncMock

from client import TursoClient
from models import (
    ApiToken,
    Database,
    DatabaseConfiguration,
    DatabaseInstance,
    DatabaseToken,
    Organization,
)
from resources.registry import ResourceRegistry, register_builtin_resources


@pytest.fixture
def mock_client():
    """Create a mock TursoClient answering like the live API."""
    client = AsyncMock(spec=TursoClient)
    client.create_database.return_value = Database(
        Name="orders", DbId="db-123", Hostname="orders-acme.turso.io"
    )
    client.get_database.return_value = Database(
        Name="orders",
        DbId="db-123",
        Hostname="orders-acme.turso.io",
        group="default",
        is_schema=False,
    )
    client.update_database_configuration.return_value = DatabaseConfiguration(
        size_limit="256mb",
        allow_attach=False,
        block_reads=False,
        block_writes=False,
        delete_protection=False,
    )
    client.get_database_configuration.return_value = DatabaseConfiguration(
        size_limit="256mb",
        allow_attach=False,
        block_reads=False,
        block_writes=False,
        delete_protection=False,
    )
    client.create_database_token.return_value = DatabaseToken(jwt="eyJ.db.token")
    client.create_api_token.return_value = ApiToken(
        name="ci", id="tok-1", token="eyJ.api.token"
    )
    client.list_api_tokens.return_value = [ApiToken(name="ci", id="tok-1")]
    client.get_organization.return_value = Organization(
        name="Acme", slug="acme", type="team"
    )
    client.get_database_instance.return_value = DatabaseInstance(
        uuid="inst-1",
        name="lhr",
        type="primary",
        region="lhr",
        hostname="lhr-orders-acme.turso.io",
    )
    return client


@pytest.fixture
def registry():
    """A registry holding the built-in resource types only."""
    return register_builtin_resources(ResourceRegistry())


@pytest.fixture
def database_plan():
    """Plan for a database in the acme organization."""
    return {"organization_name": "acme", "name": "orders", "group": "default"}


@pytest.fixture
def database_state():
    """Persisted state of the acme/orders database."""
    return {
        "organization_name": "acme",
        "name": "orders",
        "group": "default",
        "size_limit": None,
        "is_schema": None,
        "schema": None,
        "db_id": "db-123",
        "hostname": "orders-acme.turso.io",
    }
