"""
Attribute Policy - per-resource-type declaration of field behaviour.

Each resource type declares its attributes once: which are required from
the user, which are computed by the remote service, which force a
replacement when changed, which are secret, and which keep their prior
value once known. The reconciler consults these policies for validation,
merging and replacement decisions. Nothing in this module performs I/O.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from errors import PlanValidationError, ValidationError
from validation import iter_schema_errors

logger = logging.getLogger(__name__)

REDACTED = "(sensitive)"


class _Unknown:
    """Placeholder for a planned value that the remote service will fill in."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


UNKNOWN = _Unknown()


def is_known(value: Any) -> bool:
    """Return True unless the value is the UNKNOWN placeholder."""
    return value is not UNKNOWN


class ValueKind(Enum):
    """Primitive value kinds an attribute can hold."""

    STRING = "string"
    BOOL = "bool"
    NUMBER = "number"

    @property
    def json_type(self) -> str:
        return {"string": "string", "bool": "boolean", "number": "number"}[self.value]


class AttributeRole(Enum):
    """Who supplies an attribute's value."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    COMPUTED = "computed"


@dataclass(frozen=True)
class AttributeSpec:
    """Declaration of a single resource attribute."""

    name: str
    value_kind: ValueKind = ValueKind.STRING
    role: AttributeRole = AttributeRole.OPTIONAL
    sensitive: bool = False
    immutable: bool = False  # changing it forces delete + create
    preserve_prior: bool = False  # once known, always carried forward
    identifying: bool = False  # part of the remote lookup scope
    default: Any = None
    description: str = ""
    pattern: Optional[str] = None
    max_length: Optional[int] = None
    choices: Optional[Tuple[Any, ...]] = None

    def __post_init__(self):
        if self.identifying and self.role is not AttributeRole.REQUIRED:
            raise ValueError(f"Identifying attribute '{self.name}' must be required")
        if self.role is AttributeRole.COMPUTED and self.default is not None:
            raise ValueError(f"Computed attribute '{self.name}' cannot have a default")

    @property
    def is_computed(self) -> bool:
        return self.role is AttributeRole.COMPUTED

    @property
    def is_required(self) -> bool:
        return self.role is AttributeRole.REQUIRED

    def json_schema(self) -> Dict[str, Any]:
        """Render this attribute as a JSON Schema property."""
        schema: Dict[str, Any] = {"type": self.value_kind.json_type}
        if self.description:
            schema["description"] = self.description
        if self.pattern is not None:
            schema["pattern"] = self.pattern
        if self.max_length is not None:
            schema["maxLength"] = self.max_length
        if self.choices is not None:
            schema["enum"] = list(self.choices)
        return schema


class ResourcePolicy:
    """
    Attribute table for one resource type.

    Args:
        resource_type: The resource type name (e.g. 'database')
        attributes: Attribute declarations, in display order
        import_fields: Attribute names filled, in order, from the components
            of an import identifier. Empty when import is unsupported.
    """

    def __init__(
        self,
        resource_type: str,
        attributes: Sequence[AttributeSpec],
        import_fields: Sequence[str] = (),
    ):
        self.resource_type = resource_type
        self.attributes: Tuple[AttributeSpec, ...] = tuple(attributes)
        self._by_name: Dict[str, AttributeSpec] = {}

        for attr in self.attributes:
            if attr.name in self._by_name:
                raise ValueError(
                    f"Duplicate attribute '{attr.name}' in policy for {resource_type}"
                )
            self._by_name[attr.name] = attr

        for field_name in import_fields:
            if field_name not in self._by_name:
                raise ValueError(
                    f"Import field '{field_name}' is not an attribute of {resource_type}"
                )
        self.import_fields: Tuple[str, ...] = tuple(import_fields)

    def __repr__(self) -> str:
        return f"ResourcePolicy({self.resource_type!r})"

    @property
    def names(self) -> List[str]:
        return [attr.name for attr in self.attributes]

    def attribute(self, name: str) -> AttributeSpec:
        """Look up an attribute declaration by name."""
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(
                f"Unknown attribute '{name}' for resource type {self.resource_type}"
            ) from None

    def has_attribute(self, name: str) -> bool:
        return name in self._by_name

    @property
    def identifying(self) -> List[AttributeSpec]:
        return [attr for attr in self.attributes if attr.identifying]

    @property
    def computed(self) -> List[AttributeSpec]:
        return [attr for attr in self.attributes if attr.is_computed]

    @property
    def mutable(self) -> List[AttributeSpec]:
        """User-settable attributes that can change without replacement."""
        return [
            attr
            for attr in self.attributes
            if not attr.is_computed and not attr.immutable
        ]

    @property
    def supports_import(self) -> bool:
        return bool(self.import_fields)

    def empty_values(self) -> Dict[str, Any]:
        """Return a value mapping with every attribute unset."""
        return {name: None for name in self.names}

    def apply_defaults(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``values`` with declared defaults filled in."""
        result = dict(values)
        for attr in self.attributes:
            if attr.default is not None and result.get(attr.name) is None:
                result[attr.name] = attr.default
        return result

    def scope(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Extract the identifying subset of a value mapping.

        Raises:
            ValidationError: If an identifying attribute has no concrete value
        """
        scope = {}
        for attr in self.identifying:
            value = values.get(attr.name)
            if value is None or value is UNKNOWN or value == "":
                raise ValidationError(
                    f"Identifying attribute '{attr.name}' has no value",
                    attribute=attr.name,
                )
            scope[attr.name] = value
        return scope

    def json_schema(self) -> Dict[str, Any]:
        """Render the policy as a Draft 7 JSON Schema for concrete values."""
        return {
            "type": "object",
            "properties": {attr.name: attr.json_schema() for attr in self.attributes},
            "additionalProperties": False,
        }

    def validate_plan(
        self,
        plan: Mapping[str, Any],
        prior_state: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Check a plan against the policy.

        Args:
            plan: Desired attribute values, possibly containing UNKNOWN
            prior_state: The persisted state being updated, if any. A computed
                attribute with preserve_prior may carry its prior value.

        Raises:
            PlanValidationError: Listing every violation found
        """
        values = self.apply_defaults(plan)
        errors: List[ValidationError] = []

        for name in values:
            if name not in self._by_name:
                errors.append(
                    ValidationError(
                        f"Unsupported attribute '{name}'", attribute=name
                    )
                )

        for attr in self.attributes:
            value = values.get(attr.name)

            if attr.is_required:
                if value is None:
                    errors.append(
                        ValidationError(
                            f"Missing required attribute '{attr.name}'",
                            attribute=attr.name,
                        )
                    )
                elif value is UNKNOWN:
                    errors.append(
                        ValidationError(
                            f"Required attribute '{attr.name}' must have a known value",
                            attribute=attr.name,
                        )
                    )

            elif attr.is_computed and value is not None and value is not UNKNOWN:
                carried = (
                    attr.preserve_prior
                    and prior_state is not None
                    and prior_state.get(attr.name) == value
                )
                if not carried:
                    errors.append(
                        ValidationError(
                            f"Attribute '{attr.name}' is computed by the remote "
                            f"service and cannot be set",
                            attribute=attr.name,
                        )
                    )

        concrete = {
            name: value
            for name, value in values.items()
            if name in self._by_name and value is not None and value is not UNKNOWN
        }
        for path, message in iter_schema_errors(concrete, self.json_schema()):
            errors.append(
                ValidationError(
                    f"Invalid value for '{path}': {message}",
                    attribute=path if path in self._by_name else None,
                )
            )

        if errors:
            raise PlanValidationError(self.resource_type, errors)

    def replacement_attributes(
        self, prior: Mapping[str, Any], planned: Mapping[str, Any]
    ) -> List[str]:
        """
        Names of immutable attributes whose planned value differs from prior.

        As in changed_attributes, an optional attribute left unset in the
        plan is unmanaged and never forces a replacement.
        """
        prior = self.apply_defaults(prior)
        planned = self.apply_defaults(planned)

        changed = []
        for attr in self.attributes:
            if not attr.immutable:
                continue
            value = planned.get(attr.name)
            if value is UNKNOWN:
                continue
            if value is None and not attr.is_required:
                continue
            if value != prior.get(attr.name):
                changed.append(attr.name)
        return changed

    def requires_replacement(
        self, prior: Mapping[str, Any], planned: Mapping[str, Any]
    ) -> bool:
        """True iff any immutable attribute differs between prior and planned."""
        return bool(self.replacement_attributes(prior, planned))

    def changed_attributes(
        self, prior: Mapping[str, Any], planned: Mapping[str, Any]
    ) -> List[str]:
        """
        Names of user-settable attributes the plan sets to a new value.

        An optional attribute left unset in the plan is treated as unmanaged,
        so it never counts as a change.
        """
        prior = self.apply_defaults(prior)
        planned = self.apply_defaults(planned)

        changed = []
        for attr in self.attributes:
            if attr.is_computed:
                continue
            value = planned.get(attr.name)
            if value is None or value is UNKNOWN:
                continue
            if value != prior.get(attr.name):
                changed.append(attr.name)
        return changed

    def redact(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``values`` with sensitive attributes masked."""
        result = {}
        for name, value in values.items():
            attr = self._by_name.get(name)
            if attr is not None and attr.sensitive and value is not None:
                result[name] = REDACTED
            else:
                result[name] = value
        return result


class PolicyTable:
    """Lookup of attribute policies by resource type."""

    def __init__(self, policies: Iterable[ResourcePolicy] = ()):
        self._policies: Dict[str, ResourcePolicy] = {}
        for policy in policies:
            self.register(policy)

    def register(self, policy: ResourcePolicy) -> None:
        if policy.resource_type in self._policies:
            raise ValueError(
                f"Policy for resource type '{policy.resource_type}' already registered"
            )
        self._policies[policy.resource_type] = policy

    def get(self, resource_type: str) -> ResourcePolicy:
        if resource_type not in self._policies:
            available = ", ".join(self._policies.keys()) or "none"
            raise ValueError(
                f"Unknown resource type: {resource_type}. Available types: {available}"
            )
        return self._policies[resource_type]

    def policy(self, resource_type: str, attribute_name: str) -> AttributeSpec:
        """Return the declaration of one attribute of one resource type."""
        return self.get(resource_type).attribute(attribute_name)

    def requires_replacement(
        self,
        resource_type: str,
        prior: Mapping[str, Any],
        planned: Mapping[str, Any],
    ) -> bool:
        return self.get(resource_type).requires_replacement(prior, planned)

    def list_resource_types(self) -> List[str]:
        return list(self._policies.keys())

    def __contains__(self, resource_type: str) -> bool:
        return resource_type in self._policies
