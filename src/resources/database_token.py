"""Database token resource."""

import logging
from typing import Any, Dict

from policy import AttributeRole, AttributeSpec, ResourcePolicy
from resources.base import DeletePolicy, Lookup, ResourceGateway

logger = logging.getLogger(__name__)

DATABASE_TOKEN_POLICY = ResourcePolicy(
    "database_token",
    [
        AttributeSpec(
            "organization_name",
            role=AttributeRole.REQUIRED,
            immutable=True,
            identifying=True,
            description="The name of the organization or user.",
        ),
        AttributeSpec(
            "database_name",
            role=AttributeRole.REQUIRED,
            immutable=True,
            identifying=True,
            description="The name of the database.",
        ),
        AttributeSpec(
            "expiration",
            immutable=True,
            description="Expiration time for the token (e.g. 2w1d30m).",
        ),
        AttributeSpec(
            "authorization",
            immutable=True,
            default="full-access",
            choices=("full-access", "read-only"),
            description="Authorization level for the token.",
        ),
        AttributeSpec(
            "jwt",
            role=AttributeRole.COMPUTED,
            sensitive=True,
            preserve_prior=True,
            description="The generated authorization token (JWT).",
        ),
    ],
)


class DatabaseTokenGateway(ResourceGateway):
    """
    Issues database auth tokens.

    The API can mint tokens but cannot look one up or revoke it
    individually, so reads keep the stored token, updates are no-ops and
    deletion only forgets the state. Import is not supported.
    """

    policy = DATABASE_TOKEN_POLICY
    description = "An auth token for a single database"
    update_in_place = False
    delete_policy = DeletePolicy.NOOP

    async def create(
        self, scope: Dict[str, Any], attributes: Dict[str, Any]
    ) -> Dict[str, Any]:
        token = await self.client.create_database_token(
            scope["organization_name"],
            scope["database_name"],
            expiration=attributes.get("expiration"),
            authorization=attributes.get("authorization"),
        )
        return {"jwt": token.jwt}

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        logger.debug(
            f"Database tokens cannot be read back; keeping stored token for "
            f"{scope['organization_name']}/{scope['database_name']}"
        )
        return Lookup.found({})
