"""Domain model for template bundles and their version markers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

VERSION_FILE = "version.json"


@dataclass(frozen=True)
class TemplateVersionFile:
    version: str = ""

    @classmethod
    def parse(cls, raw: bytes | str) -> "TemplateVersionFile":
        """Parse a version marker; raises ``ValueError`` when it is malformed."""
        payload: Any = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("version marker must be a JSON object")
        version = payload.get("version", "")
        if not isinstance(version, str):
            raise ValueError("version marker field 'version' must be a string")
        return cls(version=version)
