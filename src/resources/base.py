"""
Resource Gateway Base - Abstract interface for managed resource types.

A gateway binds one resource type's attribute policy to the remote
operations that create, read, update and delete it. Gateways are built
once around the shared TursoClient and hold no per-call state, so a
single gateway can serve concurrent reconciliations.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Optional, TypeVar

from client import TursoClient
from errors import NotFoundError, TransportError
from policy import ResourcePolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LookupStatus(Enum):
    """Outcome of a remote lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class Lookup:
    """
    Tri-state result of reading a remote object.

    A missing object and a failed call are distinct outcomes, so a
    transport failure is never mistaken for "not found".
    """

    status: LookupStatus
    values: Dict[str, Any] = field(default_factory=dict)
    error: Optional[TransportError] = None
    message: str = ""

    @classmethod
    def found(cls, values: Dict[str, Any]) -> "Lookup":
        return cls(status=LookupStatus.FOUND, values=values)

    @classmethod
    def not_found(cls, message: str = "") -> "Lookup":
        return cls(status=LookupStatus.NOT_FOUND, message=message)

    @classmethod
    def failed(cls, error: TransportError) -> "Lookup":
        return cls(status=LookupStatus.FAILED, error=error, message=str(error))

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.status is LookupStatus.NOT_FOUND

    @property
    def is_failed(self) -> bool:
        return self.status is LookupStatus.FAILED


async def lookup(call: Awaitable[T], to_values: Callable[[T], Dict[str, Any]]) -> Lookup:
    """
    Await a client call and map its outcome to a Lookup.

    Args:
        call: The pending client call
        to_values: Maps the returned object to attribute values

    Returns:
        FOUND with the mapped values, NOT_FOUND on NotFoundError, or FAILED
        on any other TransportError
    """
    try:
        obj = await call
    except NotFoundError as e:
        return Lookup.not_found(e.message)
    except TransportError as e:
        return Lookup.failed(e)
    return Lookup.found(to_values(obj))


class DeletePolicy(Enum):
    """How a resource type handles deletion."""

    REMOTE = "remote"  # delete the remote object
    NOOP = "noop"  # forget the state only; nothing is deleted remotely


class ResourceGateway(ABC):
    """
    Abstract base class for resource gateways.

    Subclasses declare a class-level ``policy`` and implement the remote
    operations. Class attributes describe the lifecycle rules:

    * ``update_in_place``: False when the remote object cannot change after
      creation; updates then only carry planned values into state.
    * ``send_full_mutable_set``: True when the remote API has no partial
      update semantics and every mutable attribute must be sent.
    * ``delete_policy``: DeletePolicy.NOOP for sub-resources whose lifecycle
      is owned elsewhere, or objects that cannot be removed individually.
    """

    policy: ClassVar[ResourcePolicy]
    update_in_place: ClassVar[bool] = True
    send_full_mutable_set: ClassVar[bool] = False
    delete_policy: ClassVar[DeletePolicy] = DeletePolicy.REMOTE
    description: ClassVar[str] = ""

    def __init__(self, client: TursoClient):
        self.client = client

    @property
    def name(self) -> str:
        """Resource type name handled by this gateway."""
        return self.policy.resource_type

    @abstractmethod
    async def create(
        self, scope: Dict[str, Any], attributes: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create the remote object.

        Args:
            scope: Identifying attribute values
            attributes: Concrete user-supplied attribute values

        Returns:
            Attribute values reported by the remote side. These overwrite
            the planned values in the resulting state.

        Raises:
            TransportError: If the remote call fails
        """
        pass

    @abstractmethod
    async def read(self, scope: Dict[str, Any]) -> Lookup:
        """
        Fetch the remote object by its identifying attributes.

        Args:
            scope: Identifying attribute values

        Returns:
            A Lookup; FOUND values overwrite non-identifying state fields.
        """
        pass

    async def update(
        self, scope: Dict[str, Any], delta: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Change mutable attributes of the remote object.

        Only called when ``update_in_place`` is True.

        Args:
            scope: Identifying attribute values
            delta: Mutable attribute values to send

        Returns:
            Attribute values reported by the remote side.

        Raises:
            TransportError: If the remote call fails
        """
        raise NotImplementedError(f"{self.name} does not support in-place updates")

    async def delete(self, scope: Dict[str, Any]) -> None:
        """
        Delete the remote object.

        Only called when ``delete_policy`` is DeletePolicy.REMOTE.

        Raises:
            TransportError: If the remote call fails, including when the
                object is already gone
        """
        raise NotImplementedError(f"{self.name} does not support deletion")

    async def list(self, scope: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        List remote objects, for types without a point read.

        Raises:
            TransportError: If the remote call fails
        """
        raise NotImplementedError(f"{self.name} does not support listing")

    @classmethod
    def describe(cls) -> Dict[str, Any]:
        """Summary of this resource type's lifecycle rules."""
        return {
            "name": cls.policy.resource_type,
            "description": cls.description,
            "update": "in-place" if cls.update_in_place else "no-op",
            "delete": cls.delete_policy.value,
            "import": "/".join(cls.policy.import_fields) or "unsupported",
        }


class DataSource(ABC):
    """
    Abstract base class for read-only data sources.

    The identifying attributes of ``policy`` are the lookup keys; computed
    attributes are filled from the remote object.
    """

    policy: ClassVar[ResourcePolicy]
    description: ClassVar[str] = ""

    def __init__(self, client: TursoClient):
        self.client = client

    @property
    def name(self) -> str:
        return self.policy.resource_type

    @abstractmethod
    async def read(self, scope: Dict[str, Any]) -> Lookup:
        """Fetch the remote object by its lookup keys."""
        pass
