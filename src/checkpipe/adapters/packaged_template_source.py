"""Template bundles shipped inside the checkpipe package."""

from __future__ import annotations

from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path

from checkpipe.ports.template_source import TemplateSource

_IGNORED_DIRS = {"__pycache__"}


def packaged_templates_root() -> Traversable:
    return resources.files("checkpipe") / "templates"


class PackagedTemplateSource(TemplateSource):
    """Reads bundles from ``root`` (the packaged ``templates`` directory by default).

    Any directory works as a root, which keeps the source usable for bundles
    staged on disk.
    """

    def __init__(self, root: Traversable | Path | None = None) -> None:
        self._root = root if root is not None else packaged_templates_root()

    def bundles(self) -> list[str]:
        return sorted(
            entry.name
            for entry in self._root.iterdir()
            if entry.is_dir() and entry.name not in _IGNORED_DIRS
        )

    def list_files(self, bundle: str) -> list[str]:
        # nested directories are not part of a bundle
        return sorted(entry.name for entry in self._bundle_dir(bundle).iterdir() if entry.is_file())

    def read_file(self, bundle: str, name: str) -> bytes:
        return self._bundle_dir(bundle).joinpath(name).read_bytes()

    def _bundle_dir(self, bundle: str) -> Traversable:
        return self._root.joinpath(bundle)
