from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
SANDBOX_INSTALL_DIR = ROOT / ".test_place" / "install"
os.environ.setdefault("CHECKPIPE_INSTALL_DIR", str(SANDBOX_INSTALL_DIR))
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from checkpipe.constants import ENV_INSTALL_DIR, ENV_LOG_LEVEL  # noqa: E402
from checkpipe.settings import RuntimeSettings  # noqa: E402

_ENV_PREFIXES = ("CHECKPIPE_", "CP_")


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES) and name != ENV_INSTALL_DIR:
            monkeypatch.delenv(name)
    yield
    # the startup sequencer exports the configured log level itself
    os.environ.pop(ENV_LOG_LEVEL, None)
    root = logging.getLogger("checkpipe")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


@pytest.fixture()
def settings(tmp_path: Path) -> RuntimeSettings:
    return RuntimeSettings(install_dir=tmp_path / "install")
