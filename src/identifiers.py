"""
Composite identifier codec.

Import identifiers are ordered components joined with a '/' delimiter,
e.g. ``organization/database``. Components may not be empty and may not
contain the delimiter themselves.
"""

from typing import List, Sequence

from errors import InvalidIdentifierError

DELIMITER = "/"


def describe_format(names: Sequence[str]) -> str:
    """Render the expected identifier format, e.g. ``organization_name/name``."""
    return DELIMITER.join(names)


def encode(components: Sequence[str]) -> str:
    """
    Join identifier components into a single string.

    Args:
        components: Ordered, non-empty components

    Returns:
        The delimited identifier

    Raises:
        InvalidIdentifierError: If a component is empty or contains the delimiter
    """
    if not components:
        raise InvalidIdentifierError("Identifier must have at least one component")

    for component in components:
        if not component:
            raise InvalidIdentifierError("Identifier components must not be empty")
        if DELIMITER in component:
            raise InvalidIdentifierError(
                f"Identifier component {component!r} must not contain {DELIMITER!r}"
            )

    return DELIMITER.join(components)


def decode(identifier: str, expected_parts: int) -> List[str]:
    """
    Split an identifier into exactly ``expected_parts`` components.

    Only the first ``expected_parts - 1`` delimiters are split on, so the last
    component keeps any remaining text.

    Args:
        identifier: The delimited identifier
        expected_parts: Number of components the caller needs

    Returns:
        The list of components

    Raises:
        InvalidIdentifierError: If the component count is wrong or any
            component is empty
    """
    if expected_parts < 1:
        raise ValueError("expected_parts must be at least 1")

    parts = identifier.split(DELIMITER, expected_parts - 1)

    if len(parts) != expected_parts:
        raise InvalidIdentifierError(
            f"Expected {expected_parts} components separated by {DELIMITER!r}, "
            f"got {len(parts)}: {identifier!r}"
        )

    if any(part == "" for part in parts):
        raise InvalidIdentifierError(
            f"Identifier components must not be empty: {identifier!r}"
        )

    return parts
