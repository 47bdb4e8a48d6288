# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src/ to sys.path so `import papercapsule` works without installing.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from papercapsule.domain.paper import Paper  # noqa: E402
from papercapsule.utils.logging_config import Logger  # noqa: E402


def epoch_ms(year, month, day, hour=12, minute=0):
    return int(datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp() * 1000)


class FakeClock:
    """Callable epoch-ms clock that only moves when told to."""

    def __init__(self, now_ms):
        self.now = now_ms

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture(autouse=True)
def _isolated_log_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("PAPERCAPSULE_LOG_DIR", str(tmp_path / "logs"))
    Logger.close()
    yield
    Logger.close()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'papercapsule.db'}"


@pytest.fixture
def clock():
    return FakeClock(epoch_ms(2024, 3, 15))


@pytest.fixture
def make_paper():
    def _make(paper_id, title, citations=0, **kwargs):
        return Paper(id=paper_id, title=title, citation_count=citations, **kwargs)

    return _make
