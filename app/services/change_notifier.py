"""
app/services/change_notifier.py

Audit trail and in-process fan-out of committed metric changes.

Every committed write becomes one ``data_changes`` row and one
``MetricChangeEvent`` per subscriber. Subscribers read from a bounded
buffer; when it overflows the subscription is marked as having a gap and
the consumer must re-fetch, since nothing is replayed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from app.domain.metric_change import (
    CHANGE_DELETE,
    CHANGE_INSERT,
    WHOLE_RECORD_FIELD,
    AuditEntry,
    MetricChange,
    MetricChangeEvent,
)
from app.repositories.audit_log_repository import AuditLogRepository
from db.repositories.errors import MetricStoreError

logger = logging.getLogger(__name__)

_CLOSED = object()

ChangeHandler = Callable[[MetricChangeEvent], Awaitable[None]]
ResyncCallback = Callable[[], Awaitable[Any]]


class SubscriptionGapError(RuntimeError):
    """
    Raised by a subscription after events were dropped on buffer overflow.
    """


class MetricSubscription:
    """
    Async iterator over change events for one subscriber.

    Buffered events are delivered first; after that a gapped subscription
    raises ``SubscriptionGapError`` and a closed one stops iterating.
    """

    def __init__(self, notifier: "ChangeNotifier", max_buffer: int) -> None:
        self._notifier = notifier
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max(1, max_buffer))
        self._gap = False
        self._closed = False
        self._dropped = 0

    @property
    def has_gap(self) -> bool:
        return self._gap

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, event: MetricChangeEvent) -> None:
        if self._closed:
            return
        if self._gap:
            self._dropped += 1
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._gap = True
            self._dropped += 1
            logger.warning(
                "Change subscription buffer overflow buffer=%s; subscriber must resync",
                self._queue.maxsize,
            )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._notifier.unsubscribe(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    def __aiter__(self) -> "MetricSubscription":
        return self

    async def __anext__(self) -> MetricChangeEvent:
        while True:
            if self._queue.empty():
                if self._gap:
                    dropped = self._dropped
                    self.close()
                    raise SubscriptionGapError(f"Subscription dropped {dropped} event(s).")
                if self._closed:
                    raise StopAsyncIteration
            item = await self._queue.get()
            if item is _CLOSED:
                continue
            return item


class ChangeNotifier:
    """
    Appends audit entries and publishes change events.

    An audit append that fails after the write committed is logged and does
    not stop publishing.
    """

    def __init__(
        self,
        audit_log: AuditLogRepository | None = None,
        *,
        changed_by: str = "system",
        default_buffer: int = 256,
        retry_delay: float = 1.0,
    ) -> None:
        self._audit_log = audit_log
        self._changed_by = changed_by
        self._default_buffer = max(1, default_buffer)
        self._retry_delay = max(0.0, retry_delay)
        self._subscriptions: list[MetricSubscription] = []
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, changes: Sequence[MetricChange]) -> None:
        if not changes:
            return

        entries = [
            build_audit_entry(change, changed_by=self._changed_by)
            for change in changes
            if change.record_id is not None
        ]
        if self._audit_log is not None and entries:
            try:
                await self._audit_log.append(entries)
            except MetricStoreError:
                logger.exception(
                    "Audit append failed after committed write entries=%s",
                    len(entries),
                )

        for change in changes:
            event = build_event(change)
            for subscription in list(self._subscriptions):
                subscription.offer(event)

    def subscribe(self, max_buffer: int | None = None) -> MetricSubscription:
        subscription = MetricSubscription(self, max_buffer or self._default_buffer)
        if self._closed:
            subscription.close()
            return subscription
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: MetricSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def close(self) -> None:
        """
        Stop all subscriptions; used on application shutdown.
        """

        self._closed = True
        for subscription in list(self._subscriptions):
            subscription.close()

    async def listen(
        self,
        handler: ChangeHandler,
        *,
        resync: ResyncCallback,
        retry_delay: float | None = None,
        max_buffer: int | None = None,
        stop: asyncio.Event | None = None,
    ) -> None:
        """
        Long-lived subscriber loop.

        ``resync`` runs on every (re)connect before events are consumed, so a
        reconnect after a gap starts from a full re-fetch. Handler failures
        are logged and the loop keeps going; handlers must tolerate
        duplicates.
        """

        delay = self._retry_delay if retry_delay is None else retry_delay
        while not self._closed and not (stop is not None and stop.is_set()):
            subscription = self.subscribe(max_buffer)
            try:
                await resync()
                async for event in subscription:
                    try:
                        await handler(event)
                    except Exception:  # noqa: BLE001
                        logger.exception(
                            "Change handler failed change_type=%s section_key=%s metric_key=%s",
                            event.change_type,
                            event.section_key,
                            event.metric_key,
                        )
                    if stop is not None and stop.is_set():
                        break
            except SubscriptionGapError as exc:
                logger.warning("Change subscription gap, resyncing: %s", exc)
            except Exception:  # noqa: BLE001
                logger.exception("Change subscription failed; retrying in %.1fs", delay)
            finally:
                subscription.close()

            if self._closed or (stop is not None and stop.is_set()):
                break
            await asyncio.sleep(delay)


# ---------------------------------------------------------------------------
# Module-level helpers (no business logic)
# ---------------------------------------------------------------------------


def build_audit_entry(change: MetricChange, *, changed_by: str | None) -> AuditEntry:
    """
    One audit entry per change.

    Inserts and deletes record the whole row under ``_record``; updates list
    the changed columns and carry their before/after values.
    """

    if change.record_id is None:
        raise ValueError("Audit entries require a record id.")

    if change.change_type == CHANGE_INSERT:
        field_name = WHOLE_RECORD_FIELD
        old_value = None
        new_value = _dump(change.new_values)
    elif change.change_type == CHANGE_DELETE:
        field_name = WHOLE_RECORD_FIELD
        old_value = _dump(change.old_values)
        new_value = None
    else:
        field_name = ",".join(change.changed_fields) or WHOLE_RECORD_FIELD
        old_value = _dump(change.old_values)
        new_value = _dump(change.new_values)

    return AuditEntry(
        table_name=change.table_name,
        record_id=change.record_id,
        field_name=field_name,
        change_type=change.change_type,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )


def build_event(change: MetricChange) -> MetricChangeEvent:
    return MetricChangeEvent(
        change_type=change.change_type,
        section_key=change.section_key,
        metric_key=change.metric_key,
        record_id=change.record_id,
        record=None if change.change_type == CHANGE_DELETE else change.record,
        changed_fields=change.changed_fields,
    )


def _dump(values: dict[str, Any]) -> str | None:
    if not values:
        return None
    return json.dumps(values, sort_keys=True, default=str)
