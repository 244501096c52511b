"""Unit test fixtures — fake clock, in-memory store and FastMCP client."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastmcp import Client

from provmem.config import AuditConfig
from provmem.engine.decay import SECONDS_PER_DAY
from provmem.memory import create_fact
from provmem.memory import InMemoryFactStore

START = 1_700_000_000.0


class FakeClock:
    """Deterministic clock; call it for the current epoch seconds."""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, *, days: float = 0.0, seconds: float = 0.0) -> None:
        self.now += days * SECONDS_PER_DAY + seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock) -> InMemoryFactStore:
    return InMemoryFactStore(clock=clock)


@pytest.fixture()
def make_fact(store, clock):
    """Create and store a fact learned *days_ago* days before the clock."""

    async def _make(
        content: str,
        kind: str = "experienced",
        category: str = "fact",
        *,
        days_ago: float = 0.0,
        **kwargs,
    ):
        fact = create_fact(
            content,
            kind,
            category,
            now=clock() - days_ago * SECONDS_PER_DAY,
            **kwargs,
        )
        await store.create_fact(fact)
        return fact

    return _make


@pytest.fixture()
def audit_config(tmp_path: Path) -> AuditConfig:
    return AuditConfig(file_path=str(tmp_path / "audit.jsonl"))


@pytest.fixture()
async def mcp_client(audit_config, clock):
    """Yield a FastMCP Client wired to an in-memory provmem server."""
    from provmem.server import configure
    from provmem.server import mcp
    from provmem.server import shutdown

    await configure(audit_config=audit_config, clock=clock)

    async with Client(mcp) as client:
        yield client

    await shutdown()
