"""Append-only liquidation event log with newest-first cursor pagination."""

from dataclasses import replace

from src.lr_liquidation.domain.models import LiquidationEvent


class LiquidationEventLog:
    def __init__(self) -> None:
        self._events: list[LiquidationEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def append(self, event: LiquidationEvent) -> LiquidationEvent:
        """Assign the next event id and store. The stored record is never mutated."""
        stored = replace(event, event_id=len(self._events) + 1)
        self._events.append(stored)
        return stored

    def query(
        self,
        owner_id: str | None = None,
        pool_id: str | None = None,
        before_id: int | None = None,
        limit: int = 20,
    ) -> tuple[list[LiquidationEvent], bool]:
        """Newest first. Returns (page, has_more)."""
        page: list[LiquidationEvent] = []
        for event in reversed(self._events):
            if before_id is not None and event.event_id >= before_id:
                continue
            if owner_id is not None and event.owner_id != owner_id:
                continue
            if pool_id is not None and event.pool_id != pool_id:
                continue
            if len(page) == limit:
                return page, True
            page.append(event)
        return page, False
