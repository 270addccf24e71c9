"""Read-only data sources."""

from typing import Any, Dict

from models import Database, DatabaseInstance, Organization
from policy import AttributeRole, AttributeSpec, ResourcePolicy, ValueKind
from resources.base import DataSource, Lookup, lookup
from resources.database_configuration import configuration_values


def _key(name: str, description: str) -> AttributeSpec:
    return AttributeSpec(
        name, role=AttributeRole.REQUIRED, identifying=True, description=description
    )


def _computed(
    name: str, description: str, value_kind: ValueKind = ValueKind.STRING
) -> AttributeSpec:
    return AttributeSpec(
        name, value_kind=value_kind, role=AttributeRole.COMPUTED, description=description
    )


class OrganizationDataSource(DataSource):
    """Looks up an organization by slug."""

    policy = ResourcePolicy(
        "organization",
        [
            _key("slug", "The organization slug; the username for personal accounts."),
            _computed("name", "The organization name."),
            _computed("type", "The account type, 'personal' or 'team'."),
        ],
    )
    description = "An organization or personal account"

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        def values(org: Organization) -> Dict[str, Any]:
            return {"slug": org.slug, "name": org.name, "type": org.type}

        return await lookup(self.client.get_organization(scope["slug"]), values)


class DatabaseDataSource(DataSource):
    """Looks up a database by organization and name."""

    policy = ResourcePolicy(
        "database",
        [
            _key("organization_name", "The organization that owns the database."),
            _key("name", "The name of the database."),
            _computed("group", "The group the database belongs to."),
            _computed("is_schema", "Whether this is a parent schema database.", ValueKind.BOOL),
            _computed("schema", "The parent schema database, if any."),
            _computed("db_id", "The database universal unique identifier (UUID)."),
            _computed("hostname", "The DNS hostname used for libSQL and HTTP connections."),
        ],
    )
    description = "An existing database"

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        def values(db: Database) -> Dict[str, Any]:
            return {
                "group": db.group,
                "is_schema": db.is_schema,
                "schema": db.schema_name,
                "db_id": db.db_id,
                "hostname": db.hostname,
            }

        return await lookup(
            self.client.get_database(scope["organization_name"], scope["name"]),
            values,
        )


class DatabaseInstanceDataSource(DataSource):
    """Looks up a single instance (primary or replica) of a database."""

    policy = ResourcePolicy(
        "database_instance",
        [
            _key("organization_slug", "The slug of the organization or user account."),
            _key("database_name", "The name of the database."),
            _key("name", "The name of the instance."),
            _computed("uuid", "The instance universal unique identifier (UUID)."),
            _computed("type", "The instance type, 'primary' or 'replica'."),
            _computed("region", "The location code of the instance's region."),
            _computed("hostname", "The DNS hostname of this instance only."),
        ],
    )
    description = "One instance of a database"

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        def values(instance: DatabaseInstance) -> Dict[str, Any]:
            return {
                "uuid": instance.uuid,
                "type": instance.type,
                "region": instance.region,
                "hostname": instance.hostname,
            }

        return await lookup(
            self.client.get_database_instance(
                scope["organization_slug"], scope["database_name"], scope["name"]
            ),
            values,
        )


class DatabaseConfigurationDataSource(DataSource):
    """Reads the current configuration of a database."""

    policy = ResourcePolicy(
        "database_configuration",
        [
            _key("organization_slug", "The slug of the organization or user account."),
            _key("database_name", "The name of the database."),
            _computed("size_limit", "Maximum size of the database."),
            _computed("allow_attach", "Whether other databases may attach it.", ValueKind.BOOL),
            _computed("block_reads", "Whether reads are blocked.", ValueKind.BOOL),
            _computed("block_writes", "Whether writes are blocked.", ValueKind.BOOL),
            _computed("delete_protection", "Whether deletion is prevented.", ValueKind.BOOL),
        ],
    )
    description = "Settings of an existing database"

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        return await lookup(
            self.client.get_database_configuration(
                scope["organization_slug"], scope["database_name"]
            ),
            configuration_values,
        )


__all__ = [
    "OrganizationDataSource",
    "DatabaseDataSource",
    "DatabaseInstanceDataSource",
    "DatabaseConfigurationDataSource",
]
