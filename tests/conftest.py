import logging
import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # Keep a developer's .env and PLZRUN_* settings out of the tests
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("PLZRUN_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("SHELL", "/bin/sh")
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("FORCE_COLOR", raising=False)


@pytest.fixture(autouse=True)
def _reset_root_logger():
    root = logging.getLogger()
    before = list(root.handlers)
    yield
    # setup_logging() replaces the root handlers
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
