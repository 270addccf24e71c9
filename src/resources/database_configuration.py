"""Database configuration resource."""

import logging
from typing import Any, Dict

from models import DatabaseConfiguration
from policy import AttributeRole, AttributeSpec, ResourcePolicy, ValueKind
from resources.base import DeletePolicy, Lookup, ResourceGateway, lookup

logger = logging.getLogger(__name__)

SETTINGS = (
    "size_limit",
    "allow_attach",
    "block_reads",
    "block_writes",
    "delete_protection",
)

DATABASE_CONFIGURATION_POLICY = ResourcePolicy(
    "database_configuration",
    [
        AttributeSpec(
            "organization_slug",
            role=AttributeRole.REQUIRED,
            immutable=True,
            identifying=True,
            description="The slug of the organization or user account.",
        ),
        AttributeSpec(
            "database_name",
            role=AttributeRole.REQUIRED,
            immutable=True,
            identifying=True,
            description="The name of the database.",
        ),
        AttributeSpec(
            "size_limit",
            description="Maximum size of the database, e.g. 1mb, 256mb, 1gb.",
        ),
        AttributeSpec(
            "allow_attach",
            value_kind=ValueKind.BOOL,
            description="Allow other databases to attach this one.",
        ),
        AttributeSpec(
            "block_reads",
            value_kind=ValueKind.BOOL,
            description="Block all database reads.",
        ),
        AttributeSpec(
            "block_writes",
            value_kind=ValueKind.BOOL,
            description="Block all database writes.",
        ),
        AttributeSpec(
            "delete_protection",
            value_kind=ValueKind.BOOL,
            description="Prevent the database from being deleted.",
        ),
    ],
    import_fields=("organization_slug", "database_name"),
)


def configuration_values(config: DatabaseConfiguration) -> Dict[str, Any]:
    return {name: getattr(config, name) for name in SETTINGS}


class DatabaseConfigurationGateway(ResourceGateway):
    """
    Manages the configuration of an existing database.

    The configuration has no lifecycle of its own: creating it patches the
    database's settings, and deleting it leaves the database untouched. The
    database itself is removed through the database resource.
    """

    policy = DATABASE_CONFIGURATION_POLICY
    description = "Settings of an existing database"
    send_full_mutable_set = True
    delete_policy = DeletePolicy.NOOP

    async def create(
        self, scope: Dict[str, Any], attributes: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._patch(scope, attributes)

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        return await lookup(
            self.client.get_database_configuration(
                scope["organization_slug"], scope["database_name"]
            ),
            configuration_values,
        )

    async def update(
        self, scope: Dict[str, Any], delta: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._patch(scope, delta)

    async def _patch(
        self, scope: Dict[str, Any], values: Dict[str, Any]
    ) -> Dict[str, Any]:
        settings = {name: values.get(name) for name in SETTINGS}
        config = await self.client.update_database_configuration(
            scope["organization_slug"], scope["database_name"], **settings
        )
        return configuration_values(config)
