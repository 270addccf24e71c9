"""Database resource."""

import logging
from typing import Any, Dict

from models import Database
from policy import AttributeRole, AttributeSpec, ResourcePolicy, ValueKind
from resources.base import Lookup, ResourceGateway, lookup

logger = logging.getLogger(__name__)

DATABASE_POLICY = ResourcePolicy(
    "database",
    [
        AttributeSpec(
            "organization_name",
            role=AttributeRole.REQUIRED,
            immutable=True,
            identifying=True,
            description="Name of organization to create the database for.",
        ),
        AttributeSpec(
            "name",
            role=AttributeRole.REQUIRED,
            immutable=True,
            identifying=True,
            pattern=r"^[a-z0-9-]+$",
            max_length=32,
            description=(
                "The name of the new database. Must contain only lowercase "
                "letters, numbers, dashes. No longer than 32 characters."
            ),
        ),
        AttributeSpec(
            "group",
            role=AttributeRole.REQUIRED,
            immutable=True,
            description="The group where the database is created. It must already exist.",
        ),
        AttributeSpec(
            "size_limit",
            description="Maximum size of the database, e.g. 1mb, 256mb, 1gb.",
        ),
        AttributeSpec(
            "is_schema",
            value_kind=ValueKind.BOOL,
            immutable=True,
            description="Mark this database as a parent schema database.",
        ),
        AttributeSpec(
            "schema",
            immutable=True,
            description="The name of the parent database to use as the schema.",
        ),
        AttributeSpec(
            "db_id",
            role=AttributeRole.COMPUTED,
            preserve_prior=True,
            description="The database universal unique identifier (UUID).",
        ),
        AttributeSpec(
            "hostname",
            role=AttributeRole.COMPUTED,
            preserve_prior=True,
            description="The DNS hostname used for libSQL and HTTP connections.",
        ),
    ],
    import_fields=("organization_name", "name"),
)


def _database_values(db: Database) -> Dict[str, Any]:
    return {
        "group": db.group,
        "is_schema": db.is_schema,
        "schema": db.schema_name,
        "db_id": db.db_id,
        "hostname": db.hostname,
    }


class DatabaseGateway(ResourceGateway):
    """
    Manages Turso databases.

    `is_schema` and `schema` are treated as immutable: the API cannot change
    them after creation, so a declared change to either plans a replacement
    (delete then create) rather than being ignored. Leaving them out of a
    declaration leaves them unmanaged.
    """

    policy = DATABASE_POLICY
    description = "A database in an organization's group"

    async def create(
        self, scope: Dict[str, Any], attributes: Dict[str, Any]
    ) -> Dict[str, Any]:
        db = await self.client.create_database(
            scope["organization_name"],
            scope["name"],
            attributes["group"],
            size_limit=attributes.get("size_limit"),
            is_schema=attributes.get("is_schema"),
            schema=attributes.get("schema"),
        )
        logger.debug(f"Created database {scope['organization_name']}/{db.name}")
        # only a database created with is_schema set is a schema database
        return {
            "is_schema": bool(attributes.get("is_schema")),
            "db_id": db.db_id,
            "hostname": db.hostname,
        }

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        return await lookup(
            self.client.get_database(scope["organization_name"], scope["name"]),
            _database_values,
        )

    async def update(
        self, scope: Dict[str, Any], delta: Dict[str, Any]
    ) -> Dict[str, Any]:
        # size_limit is the only mutable attribute; it lives in the configuration
        await self.client.update_database_configuration(
            scope["organization_name"],
            scope["name"],
            size_limit=delta.get("size_limit"),
        )
        return {}

    async def delete(self, scope: Dict[str, Any]) -> None:
        await self.client.delete_database(scope["organization_name"], scope["name"])
