"""Error and warning aggregates produced while resolving configuration."""

from __future__ import annotations

from dataclasses import dataclass, field


class ConfigError(RuntimeError):
    """Raised for invalid or unloadable configuration."""


@dataclass
class ErrorAndWarnings:
    """At most one fatal error plus any number of advisory warnings."""

    error: Exception | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_error(cls, error: Exception) -> "ErrorAndWarnings":
        return cls(error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def add_warning(self, *warnings: str) -> None:
        for warning in warnings:
            if warning and warning not in self.warnings:
                self.warnings.append(warning)

    def merge(self, other: "ErrorAndWarnings | None") -> "ErrorAndWarnings":
        """Fold ``other`` into this aggregate; the first error wins."""
        if other is None:
            return self
        if self.error is None:
            self.error = other.error
        self.add_warning(*other.warnings)
        return self
