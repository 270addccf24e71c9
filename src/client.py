"""
Turso Platform API client.

A thin async wrapper over the Turso REST API. One client (and so one
aiohttp connection pool) is created by the host and shared by every
resource gateway; it is safe for concurrent use by in-flight
reconciliations.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import aiohttp
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from errors import NotFoundError, TransportError
from models import (
    ApiToken,
    ApiTokenList,
    Database,
    DatabaseConfiguration,
    DatabaseInstance,
    DatabaseToken,
    Organization,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.turso.tech"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _segment(value: str) -> str:
    """Quote a value for use as a single URL path segment."""
    return quote(str(value), safe="")


class TursoClient:
    """
    Async client for the Turso Platform API.

    Use as an async context manager, or call open() and close() explicitly.
    An existing aiohttp session may be injected; the client then does not
    close it.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30,
        max_connections: int = 10,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_connections = max_connections
        self._session = session
        self._owns_session = session is None

    def __repr__(self) -> str:
        return f"TursoClient(base_url={self.base_url!r})"

    async def open(self) -> None:
        """Create the shared HTTP session if one was not injected."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers=self._get_headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                connector=aiohttp.TCPConnector(limit=self.max_connections),
            )
            self._owns_session = True
            logger.debug(f"Opened HTTP session for {self.base_url}")

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
            logger.debug("Closed HTTP session")

    async def __aenter__(self) -> "TursoClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Databases

    async def create_database(
        self,
        organization: str,
        name: str,
        group: str,
        size_limit: Optional[str] = None,
        is_schema: Optional[bool] = None,
        schema: Optional[str] = None,
    ) -> Database:
        payload: Dict[str, Any] = {"name": name, "group": group}
        if size_limit is not None:
            payload["size_limit"] = size_limit
        if is_schema is not None:
            payload["is_schema"] = is_schema
        if schema is not None:
            payload["schema"] = schema

        data = await self._request(
            "POST",
            f"/v1/organizations/{_segment(organization)}/databases",
            json=payload,
        )
        return self._parse(Database, data.get("database"))

    async def get_database(self, organization: str, name: str) -> Database:
        data = await self._request("GET", self._database_path(organization, name))
        return self._parse(Database, data.get("database"))

    async def delete_database(self, organization: str, name: str) -> None:
        await self._request("DELETE", self._database_path(organization, name))

    async def get_database_configuration(
        self, organization: str, name: str
    ) -> DatabaseConfiguration:
        data = await self._request(
            "GET", f"{self._database_path(organization, name)}/configuration"
        )
        return self._parse(DatabaseConfiguration, data)

    async def update_database_configuration(
        self, organization: str, name: str, **settings: Any
    ) -> DatabaseConfiguration:
        """PATCH the configuration; settings whose value is None are not sent."""
        payload = {k: v for k, v in settings.items() if v is not None}
        data = await self._request(
            "PATCH",
            f"{self._database_path(organization, name)}/configuration",
            json=payload,
        )
        return self._parse(DatabaseConfiguration, data)

    async def create_database_token(
        self,
        organization: str,
        name: str,
        expiration: Optional[str] = None,
        authorization: Optional[str] = None,
    ) -> DatabaseToken:
        params = {}
        if expiration is not None:
            params["expiration"] = expiration
        if authorization is not None:
            params["authorization"] = authorization

        data = await self._request(
            "POST",
            f"{self._database_path(organization, name)}/auth/tokens",
            params=params,
        )
        return self._parse(DatabaseToken, data)

    async def get_database_instance(
        self, organization: str, database: str, instance: str
    ) -> DatabaseInstance:
        data = await self._request(
            "GET",
            f"{self._database_path(organization, database)}/instances/{_segment(instance)}",
        )
        return self._parse(DatabaseInstance, data.get("instance"))

    # Organizations

    async def get_organization(self, slug: str) -> Organization:
        data = await self._request("GET", f"/v1/organizations/{_segment(slug)}")
        return self._parse(Organization, data.get("organization"))

    # API tokens

    async def list_api_tokens(self) -> List[ApiToken]:
        data = await self._request("GET", "/v1/auth/api-tokens")
        return self._parse(ApiTokenList, data).tokens

    async def create_api_token(self, name: str) -> ApiToken:
        data = await self._request("POST", f"/v1/auth/api-tokens/{_segment(name)}")
        return self._parse(ApiToken, data)

    async def revoke_api_token(self, name: str) -> None:
        await self._request("DELETE", f"/v1/auth/api-tokens/{_segment(name)}")

    # Private helper methods

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    @staticmethod
    def _database_path(organization: str, name: str) -> str:
        return f"/v1/organizations/{_segment(organization)}/databases/{_segment(name)}"

    @staticmethod
    def _parse(model: Type[ModelT], data: Any) -> ModelT:
        if data is None:
            raise TransportError(f"Empty {model.__name__} in response body")
        try:
            return model.model_validate(data)
        except ModelValidationError as e:
            raise TransportError(f"Unexpected {model.__name__} response: {e}") from e

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform one API call.

        Returns:
            The decoded JSON body, or an empty dict for an empty body.

        Raises:
            NotFoundError: On HTTP 404
            TransportError: On any other HTTP error, network failure or timeout
        """
        if self._session is None:
            raise RuntimeError("TursoClient is not open; use 'async with' or open()")

        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {path}")

        try:
            async with self._session.request(
                method,
                url,
                params=params or None,
                json=json,
                headers=self._get_headers(),
            ) as response:
                body = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if status == 404:
            raise NotFoundError(f"{method} {path}: {body.strip() or 'not found'}")
        if status >= 400:
            raise TransportError(f"{method} {path}: {body.strip()}", status=status)

        if not body.strip():
            return {}

        try:
            return _decode_json(body)
        except ValueError as e:
            raise TransportError(
                f"{method} {path}: invalid JSON response: {e}", status=status
            ) from e


def _decode_json(body: str) -> Dict[str, Any]:
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data
