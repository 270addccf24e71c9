"""
Diagnostics - structured errors and warnings produced by reconciliation.

Every reconciliation call returns a Diagnostics collection instead of
raising. An error means the fields the failing operation was responsible
for must not be trusted; it does not undo anything already applied on the
remote side.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional


class Severity(Enum):
    """Diagnostic severity levels."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single reconciliation issue."""

    severity: Severity
    summary: str
    detail: str = ""
    attribute: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data

    def __str__(self) -> str:
        location = f" [{self.attribute}]" if self.attribute else ""
        return f"{self.severity.value}: {self.summary}{location}: {self.detail}"


class Diagnostics:
    """Append-only, ordered collection of diagnostics."""

    def __init__(self, items: Optional[Iterable[Diagnostic]] = None):
        self._items: List[Diagnostic] = list(items) if items else []

    def append(self, diagnostic: Diagnostic) -> None:
        self._items.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.append(diagnostic)

    def add_error(
        self, summary: str, detail: str = "", attribute: Optional[str] = None
    ) -> None:
        self.append(Diagnostic(Severity.ERROR, summary, detail, attribute))

    def add_warning(
        self, summary: str, detail: str = "", attribute: Optional[str] = None
    ) -> None:
        self.append(Diagnostic(Severity.WARNING, summary, detail, attribute))

    def has_error(self) -> bool:
        """Return True if any diagnostic is an error."""
        return any(d.severity is Severity.ERROR for d in self._items)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.WARNING]

    def to_list(self) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self._items]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        return f"Diagnostics({self._items!r})"
