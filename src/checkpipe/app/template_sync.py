"""Installs shipped check templates into the install directory.

Every bundle under the packaged ``templates`` directory is mirrored to
``<install-dir>/check/templates/<bundle>``. A bundle is rewritten whenever its
shipped ``version.json`` differs from the installed one; the comparison is
plain string equality, so a changed version in either direction (including a
downgrade) rewrites the copy.

Only the top-level files of a bundle are copied. Sub-directories are skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path

from checkpipe.adapters.packaged_template_source import PackagedTemplateSource
from checkpipe.domain.template import VERSION_FILE, TemplateVersionFile
from checkpipe.ports.template_source import TemplateSource
from checkpipe.settings import RuntimeSettings

logger = logging.getLogger(__name__)

DIR_MODE = 0o755


class TemplateSyncService:
    def __init__(self, source: TemplateSource, settings: RuntimeSettings) -> None:
        self._source = source
        self._settings = settings

    def ensure_templates(self) -> list[str]:
        """Rewrite every outdated installed bundle and return their names.

        Any ``OSError`` aborts the sync and propagates.
        """
        logger.debug("ensuring check export/output templates")
        rewritten: list[str] = []
        for bundle in self._source.bundles():
            target = self._settings.template_dir / bundle
            installed = self.installed_version(bundle)
            shipped = self.shipped_version(bundle)
            if installed == shipped:
                continue
            logger.debug(
                "template versions do not match - copying updated template bundle=%s installed=%r shipped=%r",
                bundle,
                installed,
                shipped,
            )
            try:
                self._write_bundle(bundle, target)
            except OSError:
                logger.debug("error copying template bundle=%s", bundle, exc_info=True)
                raise
            rewritten.append(bundle)
        return rewritten

    def installed_version(self, bundle: str) -> str:
        path = self._settings.template_dir / bundle / VERSION_FILE
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            logger.debug("template version file does not exist - installing the new template: %s", path)
            return ""
        except OSError:
            logger.debug("error reading current version file - installing the new template: %s", path)
            return ""
        try:
            return TemplateVersionFile.parse(raw).version
        except ValueError as exc:
            logger.debug("error parsing current version file %s: %s", path, exc)
            return ""

    def shipped_version(self, bundle: str) -> str:
        try:
            raw = self._source.read_file(bundle, VERSION_FILE)
        except OSError:
            logger.debug("error reading shipped version file for bundle %s", bundle)
            return ""
        try:
            return TemplateVersionFile.parse(raw).version
        except ValueError as exc:
            logger.debug("error parsing shipped version file for bundle %s: %s", bundle, exc)
            return ""

    def installed_versions(self) -> list[tuple[str, str]]:
        return [(bundle, self.installed_version(bundle)) for bundle in self._source.bundles()]

    def _write_bundle(self, bundle: str, target: Path) -> None:
        target.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        for name in self._source.list_files(bundle):
            payload = self._source.read_file(bundle, name)
            (target / name).write_bytes(payload)


def ensure_templates(settings: RuntimeSettings, source: TemplateSource | None = None) -> list[str]:
    service = TemplateSyncService(source or PackagedTemplateSource(), settings)
    return service.ensure_templates()
