import sys
import os
import io
import zipfile
from typing import Dict
from unittest.mock import MagicMock

# Add the project root directory to sys.path to allow imports from 'extinstall'
# This mimics setting PYTHONPATH=. when running from the project root
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
import requests

from extinstall.config import Settings
from extinstall.download import PackageFetcher
from extinstall.host import FilesystemHost
from extinstall.installer import Installer

DEMO_URL = "https://downloads.example.com/demo-plugin.zip"


def make_zip(files: Dict[str, str]) -> bytes:
    """Build a zip archive in memory from a name -> text mapping."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, text in files.items():
            zf.writestr(name, text)
    return buf.getvalue()


class FakeResponse:
    """Stands in for a streamed requests.Response."""

    def __init__(self, body: bytes = b"", status: int = 200):
        self.body = body
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1024):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def demo_zip():
    return make_zip({"demo-plugin/demo-plugin.py": "# Demo Plugin\n"})


@pytest.fixture
def session(demo_zip):
    mock = MagicMock()
    mock.get.return_value = FakeResponse(demo_zip)
    return mock


@pytest.fixture
def host(tmp_path):
    return FilesystemHost(
        plugins_dir=tmp_path / "plugins",
        themes_dir=tmp_path / "themes",
        state_file=tmp_path / "state.json",
        grants={"admin": ["*"], "editor": ["edit_posts"]},
    )


@pytest.fixture
def settings():
    return Settings(hook_prefix="acme", nonce_secret="test-secret")


@pytest.fixture
def installer(host, settings, session):
    fetcher = PackageFetcher(timeout=5, session=session)
    return Installer(host, settings, fetcher=fetcher)


def request_payload(installer: Installer, user: str = "admin", **extra) -> dict:
    payload = {"nonce": installer.get_nonce(user), "user": user}
    payload.update(extra)
    return payload
