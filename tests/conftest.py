"""
Shared test fixtures and configuration.
"""

import io
import json
import tarfile
import zipfile
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from pipeline.config import Config
from scaffolding.engine import TemplateEngine
from tools import GitManager

BINARY_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR{{name}}"


@pytest.fixture
def temp_root(tmp_path: Path) -> Path:
    """Directory all run disposables are created under."""
    root = tmp_path / "tk-tmp"
    root.mkdir()
    return root


@pytest.fixture
def global_dir(tmp_path: Path) -> Path:
    """Empty global npm modules directory."""
    directory = tmp_path / "global-modules"
    directory.mkdir()
    return directory


@pytest.fixture
def config(temp_root: Path, global_dir: Path) -> Config:
    """Config isolated from the machine's temp dir and npm install."""
    return Config.from_dict(
        {
            "engine": {"temp_root": str(temp_root)},
            "npm": {
                "global_modules_dir": str(global_dir),
                "registry_url": "https://registry.test",
            },
        }
    )


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Write a dict of relative path -> str/bytes content under tmp_path."""

    def _make(files: dict[str, str | bytes], name: str = "template") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content)
        return root

    return _make


@pytest.fixture
def basic_template(make_tree: Callable[..., Path]) -> Path:
    """A template without a descriptor or package.json."""
    return make_tree(
        {
            "README.md": "# {{ name }}\n",
            ".gitignore": "node_modules\n",
            "src/index.js": "console.log('hello');\n",
            "{{name}}.txt": "Made by {{ author }}\n",
            "logo.png": BINARY_BYTES,
            ".git/HEAD": "ref: refs/heads/main\n",
            "node_modules/dep/index.js": "module.exports = 1;\n",
        },
        name="basic",
    )


@pytest.fixture
def dest(tmp_path: Path) -> Path:
    """A destination path that does not exist yet."""
    return tmp_path / "out" / "project"


@pytest.fixture
def http_handler() -> dict[str, Callable[[httpx.Request], httpx.Response]]:
    """Routes for the mock HTTP transport, keyed by URL."""
    return {}


@pytest.fixture
def client_factory(http_handler) -> Callable[[], httpx.AsyncClient]:
    """httpx client factory backed by MockTransport and http_handler routes."""

    def handle(request: httpx.Request) -> httpx.Response:
        route = http_handler.get(str(request.url))
        if route is None:
            return httpx.Response(404)
        return route(request)

    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handle), follow_redirects=True)

    return factory


@pytest.fixture
def engine(config: Config, client_factory) -> TemplateEngine:
    """Engine whose subprocess stages never run."""
    engine = TemplateEngine(config, client_factory=client_factory)

    async def skip(*args):
        return None

    engine.on("npm-install", skip)
    engine.on("git-init", skip)
    return engine


@pytest.fixture
def fake_git(monkeypatch: pytest.MonkeyPatch) -> str:
    """Pretend git is installed."""
    monkeypatch.setattr(GitManager, "find", lambda self: "/usr/bin/git")
    return "/usr/bin/git"


@pytest.fixture
def no_git(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend git is not installed."""
    monkeypatch.setattr(GitManager, "find", lambda self: None)


def zip_bytes(files: dict[str, str | bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def tar_bytes(files: dict[str, str | bytes], mode: str = "w:gz") -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=mode) as tf:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def package_json(name: str, **extra) -> str:
    return json.dumps({"name": name, "version": "1.0.0", **extra})
