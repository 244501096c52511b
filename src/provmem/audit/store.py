"""JSONL audit trail of trust and lifecycle changes.

One JSON object per line.  File I/O runs in a worker thread; an
``asyncio.Lock`` keeps appends and reads from interleaving.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from provmem.audit.schemas import AuditEvent
from provmem.audit.schemas import AuditEventType
from provmem.config import AuditConfig

logger = logging.getLogger(__name__)

# Payload keys that name a fact
_FACT_KEYS = ("fact_id", "fact_a", "fact_b", "source_id")


def _mentions(event: AuditEvent, fact_id: str) -> bool:
    payload = event.payload
    if any(payload.get(key) == fact_id for key in _FACT_KEYS):
        return True
    return fact_id in (payload.get("fact_ids") or ())


class AuditLogger:
    """Append-only audit log; events are stamped with the injected clock."""

    def __init__(
        self,
        config: AuditConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config or AuditConfig()
        self._clock = clock or time.time
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return Path(self.config.file_path)

    # -- write --

    async def record(self, event_type: AuditEventType, **payload: Any) -> None:
        """Append one event of *event_type* carrying *payload*."""
        await self.log(
            AuditEvent(timestamp=self._clock(), event_type=event_type, payload=payload)
        )

    async def log(self, event: AuditEvent) -> None:
        if not self.config.enabled:
            return
        line = event.model_dump_json() + "\n"
        async with self._lock:
            await asyncio.to_thread(self._append, line)

    def _append(self, line: str) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(line)

    # -- read --

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        since: float | None = None,
        fact_id: str | None = None,
    ) -> list[AuditEvent]:
        """Events in file order, filtered by type, time and the fact they name."""
        async with self._lock:
            raw = await asyncio.to_thread(self._read)
        return [
            event
            for event in self._parse(raw)
            if (event_type is None or event.event_type == event_type)
            and (since is None or event.timestamp >= since)
            and (fact_id is None or _mentions(event, fact_id))
        ]

    async def fact_history(self, fact_id: str) -> list[AuditEvent]:
        """Every recorded change that names *fact_id*, oldest first."""
        return await self.read_events(fact_id=fact_id)

    def _read(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8")

    def _parse(self, raw: str) -> Iterator[AuditEvent]:
        for line_no, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                yield AuditEvent.model_validate_json(line)
            except ValidationError:
                logger.warning(
                    "Skipping malformed audit line %d in %s", line_no, self.path
                )
