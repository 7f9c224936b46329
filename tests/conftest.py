from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from foreman.tools import CapabilityRegistry, discover_capabilities


@pytest.fixture()
def sandbox(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    root_cwd = Path.cwd()
    original_env = dict(os.environ)
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(root_cwd)
        shutil.rmtree(tmp_path, ignore_errors=True)
        os.environ.clear()
        os.environ.update(original_env)


@pytest.fixture(scope="session")
def builtin_registry() -> CapabilityRegistry:
    return discover_capabilities()


class RecordingAudit:
    def __init__(self) -> None:
        self.entries = []

    async def record(self, entry) -> None:
        self.entries.append(entry)


class BrokenAudit:
    async def record(self, entry) -> None:
        raise RuntimeError("audit store unavailable")


@pytest.fixture()
def audit() -> RecordingAudit:
    return RecordingAudit()


@pytest.fixture()
def broken_audit() -> BrokenAudit:
    return BrokenAudit()
