"""Shared fixtures for the cmini test suite."""

from pathlib import Path

import pytest

from cmini_eval import evaluate
from cmini_parse import file_parse
from cmini_sink import BufferSink

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def sink() -> BufferSink:
    return BufferSink()


@pytest.fixture
def fixture_source():
    """Return a loader for C sources in tests/fixtures."""
    def load(name: str) -> str:
        return (FIXTURES / name).read_text(encoding="utf-8")
    return load


@pytest.fixture
def run():
    """Parse `src`, call `entry(*args)` and return (result, printed text)."""
    def _run(src: str, entry: str = "main", args=(), **kwargs):
        out = BufferSink()
        result = evaluate(file_parse(src), entry, args, sink=out, **kwargs)
        return result, out.getvalue()
    return _run
