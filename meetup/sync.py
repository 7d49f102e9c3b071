"""Live sync of one event's responses and chat messages.

A ``LiveSync`` keeps a local replica of an event (slots, response cells and
messages) and feeds it from Redis pub/sub. Every change that actually lands in
the replica is handed to the listener together with a summary recomputed from
the whole replica.

State machine::

    IDLE -> SUBSCRIBING -> LIVE -> UNSUBSCRIBED
                 |           |
                 |           +--(connection lost)--> SUBSCRIBING (then re-fetch)
                 +--(cannot subscribe)--> POLLING -> UNSUBSCRIBED
                                            |
                                            +--(push back)--> LIVE
    any -> ERROR when the event does not exist

Subscription always happens before the snapshot read so nothing committed in
between is missed. Pushed rows that show up twice are dropped by the apply-once
check, which compares the store-assigned revision. Re-fetched snapshots are
authoritative and overwrite whatever the replica holds.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

import redis.asyncio as redis
from redis.exceptions import RedisError

from meetup import aggregation
from meetup.bus import KIND_MESSAGES, KIND_RESPONSES, EventBus
from meetup.config import SyncSettings, get_settings
from meetup.errors import NotFoundError, SubscriptionError, TransportError
from meetup.models.scheduling import ChatMessage, Event, EventSummary, Response, Snapshot, TimeSlot
from meetup.store import Store

logger = logging.getLogger("meetup.sync")


class SyncState(str, Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    POLLING = "polling"
    UNSUBSCRIBED = "unsubscribed"
    ERROR = "error"


@dataclass
class SyncUpdate:
    kind: Literal["snapshot", "responses", "chat_message", "not_found", "state"]
    event_id: str
    state: SyncState
    rows: list[Response] = field(default_factory=list)
    messages: list[ChatMessage] = field(default_factory=list)
    summary: EventSummary | None = None
    snapshot: Snapshot | None = None


Listener = Callable[[SyncUpdate], Awaitable[None]]


class LiveSync:
    def __init__(
        self,
        redis_client: redis.Redis | None,
        store: Store,
        event_id: str,
        listener: Listener,
        settings: SyncSettings | None = None,
    ) -> None:
        self.event_id = event_id
        self._redis = redis_client
        self._store = store
        self._listener = listener
        self._settings = settings or get_settings().sync
        self._state = SyncState.IDLE
        self._task: asyncio.Task | None = None
        self._closed = False
        self._generation = 0
        self._loaded = False

        self._event: Event | None = None
        self._slots: list[TimeSlot] = []
        self._responses: dict[tuple[str, str], Response] = {}
        self._messages: dict[int, ChatMessage] = {}

    # Public API

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def responses(self) -> list[Response]:
        return list(self._responses.values())

    @property
    def messages(self) -> list[ChatMessage]:
        """Messages in render order: ``created_at``, then id."""
        return sorted(self._messages.values(), key=lambda m: m.sort_key)

    def summary(self) -> EventSummary | None:
        if self._event is None:
            return None
        return aggregation.summarize(self._event.id, self._slots, self.responses)

    def start(self) -> None:
        if self._task is not None or self._closed:
            return
        self._task = asyncio.create_task(self._run(), name=f"live-sync:{self.event_id}")

    async def close(self) -> None:
        """Stop syncing. Idempotent; no listener call happens after this returns."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._state is not SyncState.ERROR:
            self._state = SyncState.UNSUBSCRIBED
        logger.info("sync.close event=%s", self.event_id)

    # Main loop

    async def _run(self) -> None:
        pubsub = None
        try:
            while not self._closed:
                if pubsub is None:
                    try:
                        pubsub = await self._subscribe()
                    except SubscriptionError as e:
                        logger.warning("sync.degrade event=%s reason=%s", self.event_id, e.detail)
                        pubsub = await self._poll()
                        if pubsub is None:
                            return
                try:
                    await self._reconcile()
                    await self._set_state(SyncState.LIVE)
                    await self._listen(pubsub)
                except (RedisError, OSError) as e:
                    logger.warning("sync.connection_lost event=%s err=%r", self.event_id, e)
                    await asyncio.sleep(self._settings.resubscribe_backoff_sec)
                finally:
                    await self._release(pubsub)
                    pubsub = None
        except NotFoundError:
            logger.info("sync.not_found event=%s", self.event_id)
            self._state = SyncState.ERROR
            await self._emit(SyncUpdate(kind="not_found", event_id=self.event_id, state=self._state))
        except Exception:
            logger.exception("sync.failed event=%s", self.event_id)
            await self._set_state(SyncState.ERROR)

    async def _open_pubsub(self):
        """One subscribe attempt on both channels. The pubsub is released on failure."""
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(
                EventBus.channel(self.event_id, KIND_RESPONSES),
                EventBus.channel(self.event_id, KIND_MESSAGES),
            )
        except (RedisError, OSError):
            await self._release(pubsub)
            raise
        return pubsub

    async def _subscribe(self):
        await self._set_state(SyncState.SUBSCRIBING)
        if self._redis is None:
            raise SubscriptionError(detail="No notification channel configured")
        delay = self._settings.resubscribe_backoff_sec
        last_error: Exception | None = None
        for attempt in range(1, max(1, self._settings.resubscribe_attempts) + 1):
            try:
                pubsub = await self._open_pubsub()
                logger.info("sync.subscribed event=%s attempt=%d", self.event_id, attempt)
                return pubsub
            except (RedisError, OSError) as e:
                last_error = e
                logger.warning("sync.subscribe_failed event=%s attempt=%d err=%r", self.event_id, attempt, e)
                await asyncio.sleep(delay)
                delay *= 2
        raise SubscriptionError(detail=f"Could not subscribe: {last_error!r}")

    async def _release(self, pubsub) -> None:
        try:
            await pubsub.unsubscribe()
        except (RedisError, OSError):
            pass
        try:
            if hasattr(pubsub, "aclose"):
                await pubsub.aclose()
            else:
                await pubsub.close()
        except (RedisError, OSError) as e:
            logger.debug("sync.release_failed event=%s err=%r", self.event_id, e)

    async def _listen(self, pubsub) -> None:
        async for message in pubsub.listen():
            if self._closed:
                return
            if message.get("type") != "message":
                continue
            await self._handle(message.get("data"))
        raise RedisError("subscription stream ended")

    async def _poll(self):
        """Re-read the store on a fixed interval until push comes back or the sync closes.

        Each poll finishes before the next starts. Every ``resubscribe_every_polls``
        polls one subscribe attempt is made; on success the open pubsub is
        returned. Returns None once closed.
        """
        await self._set_state(SyncState.POLLING)
        polls = 0
        while not self._closed:
            try:
                await self._reconcile(retry=False)
            except TransportError as e:
                logger.warning("sync.poll_failed event=%s err=%s", self.event_id, e.detail)
            await asyncio.sleep(self._settings.poll_interval_sec)
            polls += 1
            if self._redis is None or self._closed or polls % self._settings.resubscribe_every_polls:
                continue
            try:
                pubsub = await self._open_pubsub()
            except (RedisError, OSError) as e:
                logger.debug("sync.push_still_down event=%s err=%r", self.event_id, e)
                continue
            logger.info("sync.push_restored event=%s after_polls=%d", self.event_id, polls)
            return pubsub
        return None

    # Replica maintenance

    async def _fetch(self) -> tuple[Snapshot, list[ChatMessage]] | None:
        self._generation += 1
        generation = self._generation
        snapshot = await self._store.fetch_all(self.event_id)
        messages = await self._fetch_messages()
        if self._closed or generation != self._generation:
            logger.debug("sync.discard_stale_fetch event=%s", self.event_id)
            return None
        return snapshot, messages

    async def _fetch_messages(self) -> list[ChatMessage]:
        """First load: the newest page. Afterwards: every message past the replica, page by page."""
        page_size = self._settings.message_page_size
        if not self._loaded:
            return await self._store.list_messages(self.event_id, limit=page_size)
        after = max(self._messages, default=0)
        out: list[ChatMessage] = []
        while True:
            page = await self._store.list_messages(self.event_id, after_id=after, limit=page_size)
            out.extend(page)
            if len(page) < page_size:
                return out
            after = max(m.id for m in page)

    async def _reconcile(self, retry: bool = True) -> None:
        """Load a fresh snapshot. The first load is emitted whole, later ones as deltas.

        The snapshot is authoritative: any cell that differs from the replica is
        replaced, whatever its timestamps say.
        """
        while True:
            try:
                fetched = await self._fetch()
                break
            except TransportError as e:
                if not retry:
                    raise
                logger.warning("sync.fetch_failed event=%s err=%s", self.event_id, e.detail)
                await asyncio.sleep(self._settings.poll_interval_sec)
        if fetched is None:
            return
        snapshot, messages = fetched
        self._event = snapshot.event
        self._slots = list(snapshot.time_slots)

        if not self._loaded:
            self._responses = {r.key: r for r in snapshot.responses}
            self._messages = {m.id: m for m in messages}
            self._loaded = True
            await self._emit(
                SyncUpdate(
                    kind="snapshot",
                    event_id=self.event_id,
                    state=self._state,
                    snapshot=snapshot,
                    messages=self.messages,
                    summary=self.summary(),
                )
            )
            return

        changed = self.replace_responses(snapshot.responses)
        if changed:
            await self._emit_responses(changed)
        new_messages = self.apply_messages(messages)
        if new_messages:
            await self._emit_messages(new_messages)

    def replace_responses(self, rows: list[Response]) -> list[Response]:
        """Take ``rows`` as the truth for their cells. Returns the cells that changed."""
        changed = []
        for row in rows:
            if row.event_id != self.event_id:
                continue
            if self._responses.get(row.key) != row:
                self._responses[row.key] = row
                changed.append(row)
        return changed

    def apply_responses(self, rows: list[Response]) -> list[Response]:
        """Apply pushed rows that are newer, by store revision, than what the replica holds."""
        applied = []
        for row in rows:
            if row.event_id != self.event_id:
                continue
            current = self._responses.get(row.key)
            if current is not None and current.version >= row.version:
                continue
            self._responses[row.key] = row
            applied.append(row)
        return applied

    def apply_messages(self, messages: list[ChatMessage]) -> list[ChatMessage]:
        applied = []
        for message in messages:
            if message.event_id != self.event_id or message.id in self._messages:
                continue
            self._messages[message.id] = message
            applied.append(message)
        return sorted(applied, key=lambda m: m.sort_key)

    async def _handle(self, data: Any) -> None:
        if isinstance(data, bytes):
            data = data.decode()
        try:
            payload = json.loads(data)
            kind = payload.get("type")
            if kind == "responses":
                rows = [Response.model_validate(r) for r in payload.get("rows", [])]
                applied = self.apply_responses(rows)
                if applied:
                    await self._emit_responses(applied)
            elif kind == "chat_message":
                message = ChatMessage.model_validate(payload["message"])
                applied = self.apply_messages([message])
                if applied:
                    await self._emit_messages(applied)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("sync.bad_payload event=%s err=%r", self.event_id, e)

    # Listener plumbing

    async def _emit_responses(self, rows: list[Response]) -> None:
        await self._emit(
            SyncUpdate(
                kind="responses",
                event_id=self.event_id,
                state=self._state,
                rows=rows,
                summary=self.summary(),
            )
        )

    async def _emit_messages(self, messages: list[ChatMessage]) -> None:
        await self._emit(
            SyncUpdate(kind="chat_message", event_id=self.event_id, state=self._state, messages=messages)
        )

    async def _set_state(self, state: SyncState) -> None:
        if self._state is state:
            return
        logger.debug("sync.state event=%s %s -> %s", self.event_id, self._state.value, state.value)
        self._state = state
        await self._emit(SyncUpdate(kind="state", event_id=self.event_id, state=state))

    async def _emit(self, update: SyncUpdate) -> None:
        if self._closed:
            return
        try:
            await self._listener(update)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("sync.listener_failed event=%s kind=%s", self.event_id, update.kind)
