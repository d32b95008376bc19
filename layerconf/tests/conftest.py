"""Shared fixtures for layerconf tests."""

from pathlib import Path

import pytest

from layerconf import Loader


@pytest.fixture()
def loader():
    """A fresh loader with default settings."""
    return Loader()


@pytest.fixture()
def write_config(tmp_path):
    """Write a config file into a temporary directory and return its path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
