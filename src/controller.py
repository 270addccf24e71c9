"""
Apply Controller - plans and applies declared resources against state.

The controller owns the state document and decides, per resource address,
whether to create, update, replace, delete or leave a resource alone. The
per-resource work is delegated to one Reconciler per resource type; the
controller only sequences calls and merges the returned states.
"""

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from client import TursoClient
from config import ControllerConfig
from diagnostics import Diagnostic, Diagnostics
from reconciler import ReconcileResult, Reconciler, read_data_source
from resources.registry import ResourceRegistry

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class Action(Enum):
    """What apply will do to one resource address."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "no-op"


@dataclass
class ResourceDeclaration:
    """A resource the user wants to exist."""

    resource_type: str
    name: str
    values: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name or "." in self.name:
            raise ValueError(
                f"Invalid resource name {self.name!r}: must be non-empty "
                f"and must not contain '.'"
            )

    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.name}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceDeclaration":
        """Build a declaration from a ``{type, name, values}`` mapping."""
        try:
            resource_type = data["type"]
            name = data["name"]
        except KeyError as e:
            raise ValueError(f"Resource declaration is missing {e.args[0]!r}") from None

        values = data.get("values") or {}
        if not isinstance(values, dict):
            raise ValueError(f"Values of {resource_type}.{name} must be a mapping")
        return cls(resource_type=resource_type, name=str(name), values=dict(values))


@dataclass
class PlannedChange:
    """One step of an apply."""

    address: str
    resource_type: str
    action: Action
    values: Optional[Dict[str, Any]] = None  # declared values
    prior: Optional[Dict[str, Any]] = None  # values from state
    attributes: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.address.split(".", 1)[1]


@dataclass
class ApplyReport:
    """Outcome of a controller operation: the new state and what happened."""

    state: Dict[str, Any]
    changes: List[PlannedChange] = field(default_factory=list)
    diagnostics: Dict[str, Diagnostics] = field(default_factory=dict)

    @property
    def has_error(self) -> bool:
        return any(d.has_error() for d in self.diagnostics.values())

    def iter_diagnostics(self) -> Iterator[Tuple[str, Diagnostic]]:
        for address, diagnostics in self.diagnostics.items():
            for diagnostic in diagnostics:
                yield address, diagnostic


# State document helpers


def empty_state() -> Dict[str, Any]:
    return {"version": STATE_VERSION, "resources": {}}


def load_state(path: str) -> Dict[str, Any]:
    """
    Load the state document, or an empty one if the file does not exist.

    Raises:
        ValueError: If the file is not a state document this version understands
    """
    if not os.path.exists(path):
        logger.debug(f"No state file at {path}; starting empty")
        return empty_state()

    with open(path, encoding="utf-8") as f:
        try:
            doc = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"State file {path} is not valid JSON: {e}") from e

    if not isinstance(doc, dict) or not isinstance(doc.get("resources"), dict):
        raise ValueError(f"State file {path} has no 'resources' mapping")
    if doc.get("version") != STATE_VERSION:
        raise ValueError(
            f"Unsupported state version {doc.get('version')!r} in {path}; "
            f"expected {STATE_VERSION}"
        )
    return doc


def save_state(path: str, doc: Mapping[str, Any]) -> None:
    """Write the state document atomically."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".turso-state-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
    logger.debug(f"Saved state with {len(doc['resources'])} resources to {path}")


class Controller:
    """
    Drives reconcilers for a set of declared resources.

    Resources converge independently: a failure on one address never stops
    the others, and concurrency is bounded by ``max_concurrent_reconciles``.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        client: TursoClient,
        config: Optional[ControllerConfig] = None,
    ):
        self.registry = registry
        self.client = client
        self.config = config or ControllerConfig()
        self.semaphore = asyncio.Semaphore(self.config.max_concurrent_reconciles)

        # Cache of reconcilers, one per resource type
        self._reconcilers: Dict[str, Reconciler] = {}

    def get_reconciler(self, resource_type: str) -> Reconciler:
        """
        Get or build the reconciler for a resource type.

        Raises:
            ValueError: If the resource type is not registered
        """
        if resource_type not in self._reconcilers:
            gateway = self.registry.build_gateway(resource_type, self.client)
            self._reconcilers[resource_type] = Reconciler(gateway)
        return self._reconcilers[resource_type]

    def plan(
        self,
        declarations: Iterable[ResourceDeclaration],
        state: Mapping[str, Any],
    ) -> List[PlannedChange]:
        """
        Compute the changes needed to bring state in line with declarations.

        Raises:
            ValueError: On an unknown resource type or a duplicate address
        """
        resources = state["resources"]
        changes: List[PlannedChange] = []
        declared = set()

        for decl in declarations:
            if decl.address in declared:
                raise ValueError(f"Duplicate resource address: {decl.address}")
            declared.add(decl.address)

            policy = self.registry.get_policy(decl.resource_type)
            entry = resources.get(decl.address)

            if entry is None:
                changes.append(
                    PlannedChange(
                        decl.address,
                        decl.resource_type,
                        Action.CREATE,
                        values=dict(decl.values),
                    )
                )
                continue

            prior = dict(entry["values"])
            replaced = policy.replacement_attributes(prior, decl.values)
            if replaced:
                action, attributes = Action.REPLACE, replaced
            else:
                attributes = policy.changed_attributes(prior, decl.values)
                action = Action.UPDATE if attributes else Action.NOOP

            changes.append(
                PlannedChange(
                    decl.address,
                    decl.resource_type,
                    action,
                    values=dict(decl.values),
                    prior=prior,
                    attributes=attributes,
                )
            )

        for address, entry in resources.items():
            if address not in declared:
                changes.append(
                    PlannedChange(
                        address, entry["type"], Action.DELETE, prior=dict(entry["values"])
                    )
                )

        return changes

    async def apply(
        self,
        declarations: Iterable[ResourceDeclaration],
        state: Mapping[str, Any],
    ) -> ApplyReport:
        """Plan and execute every change, returning the new state."""
        changes = self.plan(declarations, state)
        logger.info(
            f"Applying {len(changes)} changes: "
            f"{', '.join(f'{c.action.value} {c.address}' for c in changes) or 'none'}"
        )

        outcomes = await asyncio.gather(*(self._bounded(self._execute(c)) for c in changes))

        report = ApplyReport(state=self._copy_state(state), changes=changes)
        for change, (values, diagnostics) in zip(changes, outcomes):
            report.diagnostics[change.address] = diagnostics
            self._store(report.state, change.address, change.resource_type, values)
        return report

    async def refresh(self, state: Mapping[str, Any]) -> ApplyReport:
        """Read every resource; resources gone remotely are dropped from state."""
        entries = list(state["resources"].items())

        async def read(address: str, entry: Dict[str, Any]):
            reconciler = self.get_reconciler(entry["type"])
            result = await reconciler.read(entry["values"])
            if result.not_found:
                logger.info(f"Dropping {address} from state: not found remotely")
                return None, result.diagnostics
            return result.state, result.diagnostics

        outcomes = await asyncio.gather(
            *(self._bounded(read(address, entry)) for address, entry in entries)
        )

        report = ApplyReport(state=self._copy_state(state))
        for (address, entry), (values, diagnostics) in zip(entries, outcomes):
            report.diagnostics[address] = diagnostics
            self._store(report.state, address, entry["type"], values)
        return report

    async def import_resource(
        self,
        resource_type: str,
        name: str,
        identifier: str,
        state: Mapping[str, Any],
    ) -> ApplyReport:
        """Adopt an existing remote object under ``resource_type.name``."""
        address = ResourceDeclaration(resource_type, name).address
        report = ApplyReport(state=self._copy_state(state))
        diagnostics = Diagnostics()
        report.diagnostics[address] = diagnostics

        if address in state["resources"]:
            diagnostics.add_error(
                "Resource Already Managed",
                f"{address} is already in state; remove it before importing",
            )
            return report

        reconciler = self.get_reconciler(resource_type)
        async with self.semaphore:
            result = await reconciler.import_state(identifier)
        diagnostics.extend(result.diagnostics)

        if result.success and not result.not_found:
            self._store(report.state, address, resource_type, result.state)
            logger.info(f"Imported {address} from {identifier!r}")
        return report

    async def destroy(self, state: Mapping[str, Any]) -> ApplyReport:
        """Delete every resource in state."""
        changes = [
            PlannedChange(address, entry["type"], Action.DELETE, prior=dict(entry["values"]))
            for address, entry in state["resources"].items()
        ]
        outcomes = await asyncio.gather(*(self._bounded(self._execute(c)) for c in changes))

        report = ApplyReport(state=self._copy_state(state), changes=changes)
        for change, (values, diagnostics) in zip(changes, outcomes):
            report.diagnostics[change.address] = diagnostics
            self._store(report.state, change.address, change.resource_type, values)
        return report

    async def read_data(
        self, source_type: str, config: Mapping[str, Any]
    ) -> ReconcileResult:
        """Read a data source."""
        source = self.registry.build_data_source(source_type, self.client)
        async with self.semaphore:
            return await read_data_source(source, config)

    # Private helper methods

    async def _bounded(self, coro):
        async with self.semaphore:
            return await coro

    async def _execute(
        self, change: PlannedChange
    ) -> Tuple[Optional[Dict[str, Any]], Diagnostics]:
        """
        Execute one change.

        Returns:
            Tuple of (values to store or None to drop the address, diagnostics)
        """
        reconciler = self.get_reconciler(change.resource_type)

        if change.action is Action.NOOP:
            return change.prior, Diagnostics()

        if change.action is Action.CREATE:
            result = await reconciler.create(change.values)
            return result.state, result.diagnostics

        if change.action is Action.UPDATE:
            result = await reconciler.update(change.prior, change.values)
            return result.state, result.diagnostics

        diagnostics = await reconciler.delete(change.prior)
        if diagnostics.has_error():
            logger.error(f"Delete of {change.address} failed; keeping it in state")
            return change.prior, diagnostics

        if change.action is Action.DELETE:
            return None, diagnostics

        logger.info(f"Replacing {change.address}: {', '.join(change.attributes)} changed")
        result = await reconciler.create(change.values)
        diagnostics.extend(result.diagnostics)
        return result.state, diagnostics

    @staticmethod
    def _copy_state(state: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "resources": {
                address: {"type": entry["type"], "values": dict(entry["values"])}
                for address, entry in state["resources"].items()
            },
        }

    @staticmethod
    def _store(
        doc: Dict[str, Any],
        address: str,
        resource_type: str,
        values: Optional[Dict[str, Any]],
    ) -> None:
        if values is None:
            doc["resources"].pop(address, None)
        else:
            doc["resources"][address] = {"type": resource_type, "values": values}
