"""Global pytest hooks and shared fixtures."""

from pathlib import Path
from typing import Callable, Dict

import pytest


@pytest.hookimpl
def pytest_collection_modifyitems(config, items):
    """
    Automatically tag tests with markers based on their location.

    - tests in test_cli.py → cli
    - all other collected tests → api
    """
    for item in items:
        if Path(item.fspath).name == "test_cli.py":
            item.add_marker("cli")
        else:
            item.add_marker("api")


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write a dict of relative path -> text into a temporary project directory."""

    def _make(files: Dict[str, str]) -> Path:
        for rel, text in files.items():
            target = tmp_path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return tmp_path

    return _make
