"""Platform API token resource."""

import logging
from typing import Any, Dict, List

from errors import TransportError
from policy import AttributeRole, AttributeSpec, ResourcePolicy
from resources.base import Lookup, ResourceGateway

logger = logging.getLogger(__name__)

API_TOKEN_POLICY = ResourcePolicy(
    "api_token",
    [
        AttributeSpec(
            "name",
            role=AttributeRole.REQUIRED,
            immutable=True,
            identifying=True,
            description="The name of the API token.",
        ),
        AttributeSpec(
            "id",
            role=AttributeRole.COMPUTED,
            description="The ID of the token.",
        ),
        AttributeSpec(
            "token",
            role=AttributeRole.COMPUTED,
            sensitive=True,
            preserve_prior=True,
            description="The token contents as a JWT, used as a Bearer token.",
        ),
    ],
    import_fields=("name", "token"),
)


class ApiTokenGateway(ResourceGateway):
    """
    Manages platform API tokens.

    There is no point read for tokens: reads list every token and scan for
    a matching name. A token missing from a successful listing is reported
    as not found; the API gives no way to tell a revoked token from one that
    never existed.
    """

    policy = API_TOKEN_POLICY
    description = "A platform API token"
    update_in_place = False

    async def create(
        self, scope: Dict[str, Any], attributes: Dict[str, Any]
    ) -> Dict[str, Any]:
        token = await self.client.create_api_token(scope["name"])
        return {"id": token.id, "token": token.token}

    async def list(self, scope: Dict[str, Any]) -> List[Dict[str, Any]]:
        tokens = await self.client.list_api_tokens()
        return [{"name": t.name, "id": t.id} for t in tokens]

    async def read(self, scope: Dict[str, Any]) -> Lookup:
        try:
            tokens = await self.list(scope)
        except TransportError as e:
            return Lookup.failed(e)

        for token in tokens:
            if token["name"] == scope["name"]:
                return Lookup.found({"id": token["id"]})

        logger.debug(f"API token '{scope['name']}' not in listing of {len(tokens)}")
        return Lookup.not_found(f"No API token named '{scope['name']}'")

    async def delete(self, scope: Dict[str, Any]) -> None:
        await self.client.revoke_api_token(scope["name"])
