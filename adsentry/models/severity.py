import functools
from enum import Enum


@functools.total_ordering
class AlertSeverity(Enum):
    """Ordinal alert severity: LOW < MEDIUM < WARNING < HIGH < CRITICAL."""

    CRITICAL = ("critical", 5)
    HIGH = ("high", 4)
    WARNING = ("warning", 3)
    MEDIUM = ("medium", 2)
    LOW = ("low", 1)

    def __new__(cls, severity_name, severity_order):
        obj = object.__new__(cls)
        obj._value_ = severity_name
        obj.severity_order = severity_order
        return obj

    @property
    def order(self) -> int:
        return self.severity_order

    def __str__(self):
        return self._value_

    def __lt__(self, other):
        if isinstance(other, AlertSeverity):
            return self.order < other.order
        return NotImplemented

    @classmethod
    def from_name(cls, name: str) -> "AlertSeverity":
        """Accepts either the value ("critical") or the member name ("CRITICAL")."""
        try:
            return cls(name.lower())
        except ValueError:
            raise ValueError(f"Unknown severity: {name}")
