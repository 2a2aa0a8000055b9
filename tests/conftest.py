"""
Pytest configuration and fixtures for TreeMirror tests.
"""

import sys
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


TreeLayout = dict[str, "str | bytes | None"]


def _build_tree(root: Path, layout: TreeLayout) -> Path:
    """
    Create files and directories under root.

    Keys ending in "/" (or mapped to None) are directories; other keys are
    files whose value is their content.
    """
    root.mkdir(parents=True, exist_ok=True)
    for rel_path, content in layout.items():
        target = root / rel_path.rstrip("/")
        if content is None or rel_path.endswith("/"):
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content)
    return root


def _read_tree(root: Path) -> dict[str, "str | bytes"]:
    """Map every file under root to its text (or bytes, if not valid UTF-8) and every directory to "/"."""
    result: dict[str, "str | bytes"] = {}
    for path in sorted(root.rglob("*")):
        key = path.relative_to(root).as_posix()
        if path.is_dir():
            result[key] = "/"
            continue
        data = path.read_bytes()
        try:
            result[key] = data.decode("utf-8")
        except UnicodeDecodeError:
            result[key] = data
    return result


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def source(temp_dir: Path) -> Path:
    path = temp_dir / "source"
    path.mkdir()
    return path


@pytest.fixture
def replica(temp_dir: Path) -> Path:
    path = temp_dir / "replica"
    path.mkdir()
    return path


@pytest.fixture
def make_tree() -> Callable[[Path, TreeLayout], Path]:
    return _build_tree


@pytest.fixture
def read_tree() -> Callable[[Path], dict[str, str]]:
    return _read_tree


@pytest.fixture
def sample_config(temp_dir: Path) -> "TreeMirrorConfig":
    """Create a sample configuration for testing."""
    from treemirror.core.config import LoggingConfig, TreeMirrorConfig

    config = TreeMirrorConfig(
        logging=LoggingConfig(log_directory=temp_dir / "logs", console_enabled=False),
    )
    config.ensure_directories()
    return config


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
