"""Shared fixtures for reqpad tests."""

import os

import pytest
from click.testing import CliRunner

from reqpad import core
from reqpad.models import ResponseRecord


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temporary project directory and cd into it."""
    original = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(original)


@pytest.fixture(autouse=True)
def global_reqpad_dir(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.reqpad directory."""
    fake_global = tmp_path / "fake_home" / ".reqpad"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    monkeypatch.setattr(core, "GLOBAL_STORE", fake_global / "store.json")
    return fake_global


def make_response_record(
    status_code=200,
    body=None,
    headers=None,
    elapsed_ms=42.0,
    status_text="OK",
    request_id=None,
):
    """Factory for ResponseRecord objects as execute_request returns them."""
    return ResponseRecord(
        status_code=status_code,
        status_text=status_text,
        headers=headers or {},
        body=body,
        elapsed_ms=elapsed_ms,
        size=len(body.encode()) if body else 0,
        request_id=request_id,
    )
