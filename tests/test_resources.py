"""Unit tests for the resource gateways, data sources and registry."""

import pytest
from unittest.mock import MagicMock, patch

from errors import NotFoundError, TransportError
from models import ApiToken
from policy import AttributeRole, AttributeSpec, ResourcePolicy
from resources import (
    DeletePolicy,
    LookupStatus,
    ResourceRegistry,
    get_registry,
    register_builtin_resources,
    reset_registry,
)
from resources.api_token import ApiTokenGateway
from resources.base import lookup
from resources.data_sources import (
    DatabaseConfigurationDataSource,
    DatabaseDataSource,
    DatabaseInstanceDataSource,
    OrganizationDataSource,
)
from resources.database import DatabaseGateway
from resources.database_configuration import DatabaseConfigurationGateway
from resources.database_token import DatabaseTokenGateway

DB_SCOPE = {"organization_name": "acme", "name": "orders"}
CONFIG_SCOPE = {"organization_slug": "acme", "database_name": "orders"}


@pytest.mark.asyncio
class TestLookup:
    """Tests for the lookup helper."""

    async def test_found(self):
        async def call():
            return {"a": 1}

        result = await lookup(call(), lambda obj: obj)
        assert result.status is LookupStatus.FOUND
        assert result.values == {"a": 1}

    async def test_not_found(self):
        async def call():
            raise NotFoundError("gone")

        result = await lookup(call(), lambda obj: obj)
        assert result.is_not_found
        assert result.message == "gone"

    async def test_failed(self):
        async def call():
            raise TransportError("boom", status=502)

        result = await lookup(call(), lambda obj: obj)
        assert result.is_failed
        assert result.error.status == 502
        assert result.message == "HTTP 502: boom"


@pytest.mark.asyncio
class TestDatabaseGateway:
    """Tests for DatabaseGateway."""

    async def test_create(self, mock_client):
        gateway = DatabaseGateway(mock_client)

        remote = await gateway.create(DB_SCOPE, {**DB_SCOPE, "group": "default"})

        assert remote == {
            "is_schema": False,
            "db_id": "db-123",
            "hostname": "orders-acme.turso.io",
        }
        mock_client.create_database.assert_awaited_once_with(
            "acme", "orders", "default", size_limit=None, is_schema=None, schema=None
        )

    async def test_read(self, mock_client):
        result = await DatabaseGateway(mock_client).read(DB_SCOPE)

        assert result.is_found
        assert result.values == {
            "group": "default",
            "is_schema": False,
            "schema": None,
            "db_id": "db-123",
            "hostname": "orders-acme.turso.io",
        }

    async def test_read_not_found(self, mock_client):
        mock_client.get_database.side_effect = NotFoundError("no such database")

        result = await DatabaseGateway(mock_client).read(DB_SCOPE)

        assert result.is_not_found

    async def test_update_patches_size_limit(self, mock_client):
        remote = await DatabaseGateway(mock_client).update(DB_SCOPE, {"size_limit": "1gb"})

        assert remote == {}
        mock_client.update_database_configuration.assert_awaited_once_with(
            "acme", "orders", size_limit="1gb"
        )

    async def test_delete(self, mock_client):
        await DatabaseGateway(mock_client).delete(DB_SCOPE)

        mock_client.delete_database.assert_awaited_once_with("acme", "orders")


@pytest.mark.asyncio
class TestDatabaseConfigurationGateway:
    """Tests for DatabaseConfigurationGateway."""

    async def test_lifecycle_flags(self):
        assert DatabaseConfigurationGateway.send_full_mutable_set is True
        assert DatabaseConfigurationGateway.delete_policy is DeletePolicy.NOOP

    async def test_create_patches_every_setting(self, mock_client):
        remote = await DatabaseConfigurationGateway(mock_client).create(
            CONFIG_SCOPE, {**CONFIG_SCOPE, "size_limit": "256mb"}
        )

        mock_client.update_database_configuration.assert_awaited_once_with(
            "acme",
            "orders",
            size_limit="256mb",
            allow_attach=None,
            block_reads=None,
            block_writes=None,
            delete_protection=None,
        )
        assert remote["size_limit"] == "256mb"
        assert remote["delete_protection"] is False

    async def test_read(self, mock_client):
        result = await DatabaseConfigurationGateway(mock_client).read(CONFIG_SCOPE)

        assert result.is_found
        assert set(result.values) == {
            "size_limit",
            "allow_attach",
            "block_reads",
            "block_writes",
            "delete_protection",
        }


@pytest.mark.asyncio
class TestDatabaseTokenGateway:
    """Tests for DatabaseTokenGateway."""

    async def test_create(self, mock_client):
        scope = {"organization_name": "acme", "database_name": "orders"}

        remote = await DatabaseTokenGateway(mock_client).create(
            scope, {**scope, "authorization": "full-access"}
        )

        assert remote == {"jwt": "eyJ.db.token"}
        mock_client.create_database_token.assert_awaited_once_with(
            "acme", "orders", expiration=None, authorization="full-access"
        )

    async def test_read_keeps_state(self, mock_client):
        scope = {"organization_name": "acme", "database_name": "orders"}

        result = await DatabaseTokenGateway(mock_client).read(scope)

        assert result.is_found
        assert result.values == {}

    async def test_update_not_supported(self, mock_client):
        with pytest.raises(NotImplementedError):
            await DatabaseTokenGateway(mock_client).update({}, {})


@pytest.mark.asyncio
class TestApiTokenGateway:
    """Tests for ApiTokenGateway."""

    async def test_create(self, mock_client):
        remote = await ApiTokenGateway(mock_client).create({"name": "ci"}, {"name": "ci"})

        assert remote == {"id": "tok-1", "token": "eyJ.api.token"}

    async def test_read_scans_listing(self, mock_client):
        mock_client.list_api_tokens.return_value = [
            ApiToken(name="dev", id="tok-0"),
            ApiToken(name="ci", id="tok-1"),
        ]

        result = await ApiTokenGateway(mock_client).read({"name": "ci"})

        assert result.is_found
        assert result.values == {"id": "tok-1"}

    async def test_read_missing_name(self, mock_client):
        mock_client.list_api_tokens.return_value = [ApiToken(name="dev", id="tok-0")]

        result = await ApiTokenGateway(mock_client).read({"name": "ci"})

        assert result.is_not_found
        assert "ci" in result.message

    async def test_read_list_failure(self, mock_client):
        mock_client.list_api_tokens.side_effect = TransportError("boom", status=500)

        result = await ApiTokenGateway(mock_client).read({"name": "ci"})

        assert result.is_failed

    async def test_delete_revokes(self, mock_client):
        await ApiTokenGateway(mock_client).delete({"name": "ci"})

        mock_client.revoke_api_token.assert_awaited_once_with("ci")


@pytest.mark.asyncio
class TestDataSources:
    """Tests for the read-only data sources."""

    async def test_organization(self, mock_client):
        result = await OrganizationDataSource(mock_client).read({"slug": "acme"})

        assert result.values == {"slug": "acme", "name": "Acme", "type": "team"}

    async def test_database(self, mock_client):
        result = await DatabaseDataSource(mock_client).read(DB_SCOPE)

        assert result.values["db_id"] == "db-123"
        assert result.values["is_schema"] is False

    async def test_database_instance(self, mock_client):
        result = await DatabaseInstanceDataSource(mock_client).read(
            {**CONFIG_SCOPE, "name": "lhr"}
        )

        assert result.values["type"] == "primary"
        mock_client.get_database_instance.assert_awaited_once_with("acme", "orders", "lhr")

    async def test_database_configuration(self, mock_client):
        result = await DatabaseConfigurationDataSource(mock_client).read(CONFIG_SCOPE)

        assert result.values["size_limit"] == "256mb"


class TestResourceRegistry:
    """Tests for ResourceRegistry."""

    def setup_method(self):
        reset_registry()

    def teardown_method(self):
        reset_registry()

    def test_builtins(self, registry):
        assert registry.list_resources() == [
            "database",
            "database_configuration",
            "database_token",
            "api_token",
        ]
        assert registry.list_data_sources() == [
            "organization",
            "database",
            "database_instance",
            "database_configuration",
        ]

    def test_register_same_class_is_idempotent(self, registry):
        registry.register_resource(DatabaseGateway)
        assert registry.get_resource_class("database") is DatabaseGateway

    def test_register_conflicting_class(self, registry):
        class OtherDatabase(DatabaseGateway):
            pass

        with pytest.raises(ValueError, match="already registered"):
            registry.register_resource(OtherDatabase)

    def test_unknown_resource(self, registry):
        with pytest.raises(ValueError, match="Unknown resource type: cluster"):
            registry.get_resource_class("cluster")

    def test_unknown_data_source(self, registry):
        with pytest.raises(ValueError, match="Unknown data source"):
            registry.get_data_source_class("api_token")

    def test_build_gateway(self, registry, mock_client):
        gateway = registry.build_gateway("api_token", mock_client)
        assert isinstance(gateway, ApiTokenGateway)
        assert gateway.client is mock_client
        assert gateway.name == "api_token"

    def test_get_policy(self, registry):
        assert registry.get_policy("database").import_fields == ("organization_name", "name")

    def test_describe_resources(self, registry):
        described = {d["name"]: d for d in registry.describe_resources()}
        assert described["database_token"] == {
            "name": "database_token",
            "description": "An auth token for a single database",
            "update": "no-op",
            "delete": "noop",
            "import": "unsupported",
        }
        assert described["database"]["import"] == "organization_name/name"

    def test_global_registry_singleton(self):
        assert get_registry() is get_registry()

    def test_invalid_policy_rejected(self):
        class BrokenGateway(DatabaseGateway):
            policy = ResourcePolicy(
                "broken", [AttributeSpec("name", max_length=-1)]
            )

        with pytest.raises(ValueError, match="invalid policy"):
            ResourceRegistry().register_resource(BrokenGateway)

    def test_entry_point_resources(self):
        class ClusterGateway(DatabaseGateway):
            policy = ResourcePolicy(
                "cluster",
                [AttributeSpec("name", role=AttributeRole.REQUIRED, identifying=True)],
            )

        ep = MagicMock()
        ep.name = "cluster"
        ep.load.return_value = ClusterGateway
        broken = MagicMock()
        broken.name = "broken"
        broken.load.side_effect = ImportError("missing module")

        with patch("resources.registry.entry_points", return_value=[ep, broken]):
            registry = register_builtin_resources(ResourceRegistry())

        assert registry.has_resource("cluster")
        assert not registry.has_resource("broken")
