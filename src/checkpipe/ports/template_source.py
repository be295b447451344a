"""Port definitions for shipped template bundles."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable


class TemplateSource(ABC):
    @abstractmethod
    def bundles(self) -> Iterable[str]:
        """Return the names of all available bundles."""

    @abstractmethod
    def list_files(self, bundle: str) -> Iterable[str]:
        """Return the names of the top-level files of ``bundle``."""

    @abstractmethod
    def read_file(self, bundle: str, name: str) -> bytes:
        """Return the contents of ``name`` in ``bundle``; raises ``OSError``."""
