"""
Resource Registry - Discovery and registration of resource types.

This module provides the central registry for resource gateways and data
sources, handling discovery, registration, and binding to a client.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, List, Optional, Type

from client import TursoClient
from policy import PolicyTable, ResourcePolicy
from resources.base import DataSource, ResourceGateway
from validation import validate_schema

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "turso_reconciler.resources"


class ResourceRegistry:
    """
    Central registry for resource types.

    Holds gateway and data source classes (not instances). Gateways are
    bound to a client on demand, so the registry itself carries no
    connection state.
    """

    def __init__(self):
        self._gateways: Dict[str, Type[ResourceGateway]] = {}
        self._data_sources: Dict[str, Type[DataSource]] = {}
        self._policies = PolicyTable()

    # Registration methods

    def register_resource(self, gateway_class: Type[ResourceGateway]) -> None:
        """
        Register a resource gateway class.

        Args:
            gateway_class: The ResourceGateway subclass to register

        Raises:
            ValueError: If the resource type is already registered by
                another class, or its policy does not render to a valid
                JSON schema
        """
        name = gateway_class.policy.resource_type
        existing = self._gateways.get(name)

        if existing is gateway_class:
            return
        if existing is not None:
            raise ValueError(
                f"Resource type '{name}' is already registered by "
                f"{existing.__name__}. Cannot register {gateway_class.__name__}."
            )

        is_valid, error = validate_schema(gateway_class.policy.json_schema())
        if not is_valid:
            raise ValueError(f"Resource type '{name}' has an invalid policy: {error}")

        self._gateways[name] = gateway_class
        self._policies.register(gateway_class.policy)
        logger.info(f"Registered resource type: {name}")

    def register_data_source(self, source_class: Type[DataSource]) -> None:
        """
        Register a data source class.

        Args:
            source_class: The DataSource subclass to register
        """
        name = source_class.policy.resource_type

        if name in self._data_sources and self._data_sources[name] is not source_class:
            logger.warning(f"Overwriting existing data source: {name}")

        self._data_sources[name] = source_class
        logger.info(f"Registered data source: {name}")

    # Lookup methods

    def get_resource_class(self, name: str) -> Type[ResourceGateway]:
        """
        Get a registered gateway class.

        Raises:
            ValueError: If the resource type is not registered
        """
        if name not in self._gateways:
            available = ", ".join(self._gateways.keys()) or "none"
            raise ValueError(
                f"Unknown resource type: {name}. Available types: {available}"
            )
        return self._gateways[name]

    def get_data_source_class(self, name: str) -> Type[DataSource]:
        """
        Get a registered data source class.

        Raises:
            ValueError: If the data source is not registered
        """
        if name not in self._data_sources:
            available = ", ".join(self._data_sources.keys()) or "none"
            raise ValueError(
                f"Unknown data source: {name}. Available data sources: {available}"
            )
        return self._data_sources[name]

    def build_gateway(self, name: str, client: TursoClient) -> ResourceGateway:
        """Bind a gateway for ``name`` to the shared client."""
        return self.get_resource_class(name)(client)

    def build_data_source(self, name: str, client: TursoClient) -> DataSource:
        """Bind a data source for ``name`` to the shared client."""
        return self.get_data_source_class(name)(client)

    def get_policy(self, name: str) -> ResourcePolicy:
        return self._policies.get(name)

    @property
    def policies(self) -> PolicyTable:
        return self._policies

    def list_resources(self) -> List[str]:
        """List all registered resource type names."""
        return list(self._gateways.keys())

    def list_data_sources(self) -> List[str]:
        """List all registered data source names."""
        return list(self._data_sources.keys())

    def has_resource(self, name: str) -> bool:
        return name in self._gateways

    def has_data_source(self, name: str) -> bool:
        return name in self._data_sources

    def describe_resources(self) -> List[Dict[str, Any]]:
        return [cls.describe() for cls in self._gateways.values()]


# Global registry instance
_registry: Optional[ResourceRegistry] = None


def get_registry() -> ResourceRegistry:
    """Get the global resource registry singleton."""
    global _registry
    if _registry is None:
        _registry = ResourceRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_resources(registry: Optional[ResourceRegistry] = None) -> ResourceRegistry:
    """
    Register all built-in resource types and data sources, then discover
    additional resource types via entry points.

    Args:
        registry: Registry to populate; defaults to the global registry

    Returns:
        The populated registry
    """
    from resources.api_token import ApiTokenGateway
    from resources.data_sources import (
        DatabaseConfigurationDataSource,
        DatabaseDataSource,
        DatabaseInstanceDataSource,
        OrganizationDataSource,
    )
    from resources.database import DatabaseGateway
    from resources.database_configuration import DatabaseConfigurationGateway
    from resources.database_token import DatabaseTokenGateway

    registry = registry or get_registry()

    for gateway_class in (
        DatabaseGateway,
        DatabaseConfigurationGateway,
        DatabaseTokenGateway,
        ApiTokenGateway,
    ):
        registry.register_resource(gateway_class)

    for source_class in (
        OrganizationDataSource,
        DatabaseDataSource,
        DatabaseInstanceDataSource,
        DatabaseConfigurationDataSource,
    ):
        registry.register_data_source(source_class)

    # Discover and register third-party resource types via entry points
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            registry.register_resource(ep.load())
        except Exception as e:
            logger.warning(f"Could not load resource type {ep.name}: {e}")

    return registry
