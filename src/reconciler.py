"""
Resource Reconciler - the generic reconciliation state machine.

One Reconciler drives a single resource type through
Absent -> Planned -> Persisted -> (Updated -> Persisted)* -> Absent
using the type's attribute policy and gateway. It holds no state across
calls: plans and states come in by value and new states go out by value,
so instances can be shared by concurrent reconciliations.

Expected failures never escape as exceptions. Every operation returns its
diagnostics, and a failed operation never partially applies a plan to the
returned state.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from diagnostics import Diagnostics
from errors import (
    InvalidIdentifierError,
    PlanValidationError,
    TransportError,
    ValidationError,
)
from identifiers import decode, describe_format
from policy import UNKNOWN, ResourcePolicy
from resources.base import DataSource, DeletePolicy, Lookup, ResourceGateway

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Result of one reconciliation call."""

    state: Optional[Dict[str, Any]] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    not_found: bool = False

    @property
    def success(self) -> bool:
        return not self.diagnostics.has_error()


def _add_validation_errors(
    diagnostics: Diagnostics, error: ValidationError, summary: str = "Invalid Plan"
) -> None:
    errors = error.errors if isinstance(error, PlanValidationError) else [error]
    for e in errors:
        diagnostics.add_error(summary, e.message, attribute=e.attribute)


class Reconciler:
    """
    Reconciles instances of one resource type.

    Args:
        gateway: The resource type's gateway, already bound to the shared
            client. Its ``policy`` drives validation and merging.
    """

    def __init__(self, gateway: ResourceGateway):
        self.gateway = gateway
        self.policy: ResourcePolicy = gateway.policy

    @property
    def resource_type(self) -> str:
        return self.policy.resource_type

    def __repr__(self) -> str:
        return f"Reconciler({self.resource_type!r})"

    async def create(self, plan: Mapping[str, Any]) -> ReconcileResult:
        """
        Create the remote object described by ``plan``.

        Returns:
            ReconcileResult whose state is the plan merged with the values
            the remote side computed, or state None on any error.
        """
        result = ReconcileResult()
        values = self.policy.apply_defaults(plan)

        try:
            self.policy.validate_plan(values)
            scope = self.policy.scope(values)
        except ValidationError as e:
            _add_validation_errors(result.diagnostics, e)
            return result

        attributes = self._user_values(values)

        try:
            remote = await self.gateway.create(scope, attributes)
        except TransportError as e:
            logger.warning(f"Failed to create {self.resource_type} {scope}: {e}")
            result.diagnostics.add_error(
                "Client Error",
                f"Unable to create {self.resource_type}, got error: {e}",
            )
            return result

        state = self._planned_state(values)
        self._overlay(state, remote)
        result.state = state

        logger.info(f"Created {self.resource_type} {scope}")
        return result

    async def read(self, state: Mapping[str, Any]) -> ReconcileResult:
        """
        Refresh ``state`` from the remote object.

        Only the identifying attributes are sent. Attributes declared with
        preserve_prior keep their known prior value. When the object is not
        found, the prior state is returned unchanged with ``not_found`` set
        and a warning; the caller decides whether the resource is gone.
        """
        prior = dict(state)
        result = ReconcileResult(state=prior)

        try:
            scope = self.policy.scope(prior)
        except ValidationError as e:
            _add_validation_errors(result.diagnostics, e, "Invalid State")
            return result

        lookup = await self.gateway.read(scope)
        result.state = self._merge_lookup(prior, lookup, result, scope)
        return result

    async def update(
        self, prior_state: Mapping[str, Any], plan: Mapping[str, Any]
    ) -> ReconcileResult:
        """
        Apply mutable changes from ``plan`` to the remote object.

        The caller must replace (delete then create) the resource when an
        immutable attribute changes; such an update is rejected here without
        any remote call. On failure the returned state equals the prior
        state.
        """
        prior = dict(prior_state)
        result = ReconcileResult(state=prior)
        values = self.policy.apply_defaults(plan)

        try:
            self.policy.validate_plan(values, prior_state=prior)
            scope = self.policy.scope(prior)
        except ValidationError as e:
            _add_validation_errors(result.diagnostics, e)
            return result

        replaced = self.policy.replacement_attributes(prior, values)
        if replaced:
            for name in replaced:
                result.diagnostics.add_error(
                    "Resource Replacement Required",
                    f"Attribute '{name}' of {self.resource_type} cannot be changed "
                    f"in place; the resource must be deleted and created again",
                    attribute=name,
                )
            return result

        state = self._planned_state(values, prior)

        if not self.gateway.update_in_place:
            logger.debug(f"{self.resource_type} is immutable; update stores plan only")
            result.state = state
            return result

        delta = self._delta(prior, values)
        if not delta:
            logger.debug(f"No mutable changes for {self.resource_type} {scope}")
            result.state = state
            return result

        try:
            remote = await self.gateway.update(scope, delta)
        except TransportError as e:
            logger.warning(f"Failed to update {self.resource_type} {scope}: {e}")
            result.diagnostics.add_error(
                "Client Error",
                f"Unable to update {self.resource_type}, got error: {e}",
            )
            return result

        self._overlay(state, remote)
        result.state = state

        logger.info(f"Updated {self.resource_type} {scope}: {sorted(delta)}")
        return result

    async def delete(self, state: Mapping[str, Any]) -> Diagnostics:
        """
        Delete the remote object identified by ``state``.

        A missing remote object is reported as an error, except for types
        whose delete policy is NOOP.
        """
        diagnostics = Diagnostics()

        try:
            scope = self.policy.scope(state)
        except ValidationError as e:
            _add_validation_errors(diagnostics, e, "Invalid State")
            return diagnostics

        if self.gateway.delete_policy is DeletePolicy.NOOP:
            logger.info(
                f"Delete of {self.resource_type} {scope} removes state only; "
                f"the remote object is not deleted"
            )
            return diagnostics

        try:
            await self.gateway.delete(scope)
        except TransportError as e:
            logger.warning(f"Failed to delete {self.resource_type} {scope}: {e}")
            diagnostics.add_error(
                "Client Error",
                f"Unable to delete {self.resource_type}, got error: {e}",
            )
            return diagnostics

        logger.info(f"Deleted {self.resource_type} {scope}")
        return diagnostics

    def decode_import_identifier(self, identifier: str) -> Dict[str, str]:
        """
        Decode an import identifier into attribute values.

        Raises:
            InvalidIdentifierError: If the identifier is malformed or the
                resource type does not support import
        """
        fields = self.policy.import_fields
        if not fields:
            raise InvalidIdentifierError(
                f"Resource type {self.resource_type} does not support import"
            )

        try:
            components = decode(identifier, len(fields))
        except InvalidIdentifierError:
            raise InvalidIdentifierError(
                f"Expected import identifier with format: "
                f"{describe_format(fields)}. Got: {identifier!r}"
            ) from None

        return dict(zip(fields, components))

    async def import_state(self, identifier: str) -> ReconcileResult:
        """
        Import an existing remote object by its composite identifier.

        Decoded components populate the state, then a read fills in the rest.
        """
        result = ReconcileResult()

        if not self.policy.supports_import:
            result.diagnostics.add_error(
                "Import Not Supported",
                f"Resource type {self.resource_type} cannot be imported",
            )
            return result

        try:
            decoded = self.decode_import_identifier(identifier)
        except InvalidIdentifierError as e:
            result.diagnostics.add_error("Unexpected Import Identifier", e.message)
            return result

        logger.debug(f"Importing {self.resource_type} {identifier}")
        state = self.policy.empty_values()
        state.update(decoded)
        return await self.read(state)

    # Private helper methods

    def _user_values(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Concrete values of user-settable attributes."""
        return {
            attr.name: values[attr.name]
            for attr in self.policy.attributes
            if not attr.is_computed
            and values.get(attr.name) is not None
            and values.get(attr.name) is not UNKNOWN
        }

    def _planned_state(
        self,
        values: Mapping[str, Any],
        prior: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        State implied by a plan before remote values are merged.

        Unknown values become None; computed attributes fall back to the
        prior state when there is one.
        """
        state = {}
        for attr in self.policy.attributes:
            value = values.get(attr.name)
            if value is UNKNOWN:
                value = None
            if attr.is_computed and prior is not None:
                prior_value = prior.get(attr.name)
                if prior_value is not None and (value is None or attr.preserve_prior):
                    value = prior_value
            state[attr.name] = value
        return state

    def _delta(
        self, prior: Mapping[str, Any], values: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """Mutable values to send on update; empty when nothing changed."""
        changed = self.policy.changed_attributes(prior, values)
        if not changed:
            return {}

        if self.gateway.send_full_mutable_set:
            names = [attr.name for attr in self.policy.mutable]
        else:
            names = changed

        return {
            name: values[name]
            for name in names
            if values.get(name) is not None and values.get(name) is not UNKNOWN
        }

    def _overlay(self, state: Dict[str, Any], remote: Mapping[str, Any]) -> None:
        """Overwrite state with values the remote side reported."""
        for name, value in remote.items():
            if value is None or not self.policy.has_attribute(name):
                continue
            state[name] = value

    def _merge_lookup(
        self,
        prior: Dict[str, Any],
        lookup: Lookup,
        result: ReconcileResult,
        scope: Dict[str, Any],
    ) -> Dict[str, Any]:
        if lookup.is_failed:
            logger.warning(f"Failed to read {self.resource_type} {scope}: {lookup.message}")
            result.diagnostics.add_error(
                "Client Error",
                f"Unable to read {self.resource_type}, got error: {lookup.message}",
            )
            return prior

        if lookup.is_not_found:
            logger.info(f"{self.resource_type} {scope} not found remotely")
            result.not_found = True
            result.diagnostics.add_warning(
                "Resource Not Found",
                f"{self.resource_type} {scope} does not exist remotely"
                + (f": {lookup.message}" if lookup.message else ""),
            )
            return prior

        state = dict(prior)
        for name, value in lookup.values.items():
            if value is None or not self.policy.has_attribute(name):
                continue
            attr = self.policy.attribute(name)
            if attr.identifying:
                continue
            if attr.preserve_prior and prior.get(name) is not None:
                continue
            state[name] = value
        return state


async def read_data_source(
    source: DataSource, config: Mapping[str, Any]
) -> ReconcileResult:
    """
    Read a data source.

    Unlike a resource read, a data source that cannot be found is an error:
    the configuration refers to something that must already exist.
    """
    result = ReconcileResult()
    policy = source.policy

    try:
        policy.validate_plan(config)
        scope = policy.scope(config)
    except ValidationError as e:
        _add_validation_errors(result.diagnostics, e)
        return result

    lookup = await source.read(scope)

    if lookup.is_failed:
        result.diagnostics.add_error(
            "Client Error",
            f"Unable to read {policy.resource_type}, got error: {lookup.message}",
        )
        return result

    if lookup.is_not_found:
        result.not_found = True
        result.diagnostics.add_error(
            f"Unable to read {policy.resource_type}",
            f"{policy.resource_type} {scope} does not exist"
            + (f": {lookup.message}" if lookup.message else ""),
        )
        return result

    state = policy.empty_values()
    state.update(scope)
    for name, value in lookup.values.items():
        if policy.has_attribute(name) and not policy.attribute(name).identifying:
            state[name] = value
    result.state = state
    return result
