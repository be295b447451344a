"""Packaged resources for checkpipe."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any

import jsonschema

__all__ = ["load_schema", "schema_validator"]


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    """Return a JSON schema shipped with the package."""

    raw = resources.files(__name__).joinpath(name).read_text("utf-8")
    return json.loads(raw)


@lru_cache(maxsize=None)
def schema_validator(name: str) -> jsonschema.Draft202012Validator:
    schema = load_schema(name)
    return jsonschema.Draft202012Validator(schema)
