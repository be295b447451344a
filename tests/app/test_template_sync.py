from __future__ import annotations

import json
from pathlib import Path

import pytest

from checkpipe.adapters.packaged_template_source import PackagedTemplateSource
from checkpipe.app.template_sync import TemplateSyncService, ensure_templates
from checkpipe.settings import RuntimeSettings


def _make_bundle(root: Path, name: str, version: str | None, files: dict[str, str] | None = None) -> Path:
    bundle = root / name
    bundle.mkdir(parents=True, exist_ok=True)
    if version is not None:
        (bundle / "version.json").write_text(json.dumps({"version": version}, separators=(",", ":")), encoding="utf-8")
    for file_name, content in (files or {"output.tmpl": f"{name} template"}).items():
        (bundle / file_name).write_text(content, encoding="utf-8")
    return bundle


def _snapshot(directory: Path) -> dict[str, tuple[bytes, int]]:
    return {
        str(path.relative_to(directory)): (path.read_bytes(), path.stat().st_mtime_ns)
        for path in sorted(directory.rglob("*"))
        if path.is_file()
    }


@pytest.fixture()
def embedded(tmp_path: Path) -> Path:
    root = tmp_path / "embedded"
    root.mkdir()
    return root


def _service(embedded: Path, settings: RuntimeSettings) -> TemplateSyncService:
    return TemplateSyncService(PackagedTemplateSource(embedded), settings)


def test_installs_missing_bundle(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "html", "2", {"output.tmpl": "<html/>", "theme.css": "body {}"})

    updated = _service(embedded, settings).ensure_templates()

    target = settings.install_dir / "check" / "templates" / "html"
    assert updated == ["html"]
    assert (target / "version.json").read_text(encoding="utf-8") == '{"version":"2"}'
    assert (target / "output.tmpl").read_text(encoding="utf-8") == "<html/>"
    assert (target / "theme.css").read_text(encoding="utf-8") == "body {}"


def test_matching_versions_perform_no_writes(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "md", "1", {"output.tmpl": "shipped"})
    installed = _make_bundle(settings.template_dir, "md", "1", {"output.tmpl": "customised locally"})
    before = _snapshot(installed)

    updated = _service(embedded, settings).ensure_templates()

    assert updated == []
    assert _snapshot(installed) == before
    assert (installed / "output.tmpl").read_text(encoding="utf-8") == "customised locally"


def test_sync_is_idempotent(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "html", "2")
    _make_bundle(embedded, "csv", "1")
    service = _service(embedded, settings)

    assert service.ensure_templates() == ["csv", "html"]
    first = _snapshot(settings.template_dir)
    assert service.ensure_templates() == []
    assert _snapshot(settings.template_dir) == first


def test_downgrade_rewrites_installed_copy(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "html", "2", {"output.tmpl": "v2"})
    installed = _make_bundle(settings.template_dir, "html", "3", {"output.tmpl": "v3"})

    assert _service(embedded, settings).ensure_templates() == ["html"]

    assert json.loads((installed / "version.json").read_text(encoding="utf-8")) == {"version": "2"}
    assert (installed / "output.tmpl").read_text(encoding="utf-8") == "v2"


@pytest.mark.parametrize("marker", ["not json", "[]", '{"version": 3}', ""])
def test_malformed_installed_marker_forces_resync(embedded: Path, settings: RuntimeSettings, marker: str) -> None:
    _make_bundle(embedded, "json", "1")
    installed = settings.template_dir / "json"
    installed.mkdir(parents=True)
    (installed / "version.json").write_text(marker, encoding="utf-8")

    assert _service(embedded, settings).ensure_templates() == ["json"]
    assert (installed / "version.json").read_text(encoding="utf-8") == '{"version":"1"}'


def test_missing_shipped_marker_without_installed_copy_is_skipped(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "csv", None)

    assert _service(embedded, settings).ensure_templates() == []
    assert not (settings.template_dir / "csv").exists()


def test_missing_shipped_marker_with_versioned_copy_rewrites(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "csv", None, {"output.tmpl": "shipped"})
    installed = _make_bundle(settings.template_dir, "csv", "1", {"output.tmpl": "old"})

    assert _service(embedded, settings).ensure_templates() == ["csv"]
    assert (installed / "output.tmpl").read_text(encoding="utf-8") == "shipped"


def test_nested_directories_are_not_copied(embedded: Path, settings: RuntimeSettings) -> None:
    bundle = _make_bundle(embedded, "html", "2")
    (bundle / "assets").mkdir()
    (bundle / "assets" / "logo.svg").write_text("<svg/>", encoding="utf-8")

    _service(embedded, settings).ensure_templates()

    target = settings.template_dir / "html"
    assert (target / "output.tmpl").exists()
    assert not (target / "assets").exists()


def test_io_error_aborts_sync(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "html", "2", {"output.tmpl": "a", "theme.css": "b"})

    class BrokenSource(PackagedTemplateSource):
        def read_file(self, bundle: str, name: str) -> bytes:
            if name == "theme.css":
                raise PermissionError(f"cannot read {name}")
            return super().read_file(bundle, name)

    service = TemplateSyncService(BrokenSource(embedded), settings)

    with pytest.raises(PermissionError):
        service.ensure_templates()


def test_installed_versions_reports_each_bundle(embedded: Path, settings: RuntimeSettings) -> None:
    _make_bundle(embedded, "html", "2")
    _make_bundle(embedded, "md", "1")
    _make_bundle(settings.template_dir, "html", "2")

    service = _service(embedded, settings)

    assert service.installed_versions() == [("html", "2"), ("md", "")]


def test_packaged_bundles_carry_version_markers(settings: RuntimeSettings) -> None:
    source = PackagedTemplateSource()
    service = TemplateSyncService(source, settings)

    bundles = list(source.bundles())

    assert {"csv", "html", "json", "md"} <= set(bundles)
    for bundle in bundles:
        assert service.shipped_version(bundle), f"bundle {bundle} ships without a version marker"
        assert "output.tmpl" in source.list_files(bundle)


def test_ensure_templates_installs_packaged_bundles(settings: RuntimeSettings) -> None:
    updated = ensure_templates(settings)

    assert "html" in updated
    marker = settings.template_dir / "html" / "version.json"
    assert json.loads(marker.read_text(encoding="utf-8"))["version"]
    assert ensure_templates(settings) == []
