"""Inbox broker facade.

`InboxBroker` wires the credential store, access gate, validator, message log,
query engine, lifecycle manager and fan-out hub together and exposes the
operations used by the HTTP API and by any other front-end (for example an
agent tool-call shim).

Every blocking method opens its own database session. Storage failures are
rolled back and surfaced as `StorageUnavailableError`; nothing is acknowledged
unless it was committed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from inbox_broker.core.errors import (
    InboxNotFoundError,
    MalformedInputError,
    StorageUnavailableError,
)
from inbox_broker.core.settings import Settings, settings
from inbox_broker.db.session import build_engine, build_session_factory, create_tables
from inbox_broker.models import Inbox, Message
from inbox_broker.schemas import InboxCreated, InboxDetail, InboxPublic, MessageRecord

from .access_gate import AccessGate
from .credentials import CredentialStore
from .fanout import FanoutHub, Subscription
from .inbox_locks import InboxLocks
from .lifecycle import InboxLifecycle
from .message_log import MessageLog
from .query import MessageFilters, QueryEngine
from .validator import validate_envelope

logger = logging.getLogger(__name__)

# Transport headers worth keeping with a message; everything else is dropped.
ALLOWED_HEADERS = ("content-type", "user-agent", "x-request-id", "x-forwarded-for")

TOOL_HEADERS = {"content-type": "application/json", "user-agent": "inbox-broker-tool"}

_OMITTED = object()


def filter_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Return the allow-listed subset of `headers` with lower-cased names."""
    if not headers:
        return {}
    lowered = {str(key).lower(): str(value) for key, value in headers.items()}
    return {key: lowered[key] for key in ALLOWED_HEADERS if lowered.get(key)}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def parse_json_body(raw: bytes | str) -> Any:
    """Decode a raw request body as strict JSON; NaN and Infinity are refused."""
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedInputError("Invalid JSON body") from exc


class InboxBroker:
    """Credential-gated inboxes with an append-only log and live fan-out."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        hub: FanoutHub | None = None,
        *,
        config: Settings = settings,
        engine: Engine | None = None,
    ) -> None:
        self.config = config
        self.engine = engine
        self.hub = hub or FanoutHub(config.subscriber_queue_size)
        self.locks = InboxLocks()
        self.credentials = CredentialStore()
        self.gate = AccessGate(self.credentials)
        self.log = MessageLog(self.locks, max_limit=config.query_max_limit)
        self.queries = QueryEngine(self.log)
        self.lifecycle = InboxLifecycle(self.credentials, self.log, self.locks)
        self._session_factory = session_factory

    @classmethod
    def from_settings(cls, config: Settings = settings) -> InboxBroker:
        """Build the engine, session factory and hub described by `config`."""
        engine = build_engine(config.database_url_sync, echo=config.sql_debug)
        if config.auto_create_tables:
            create_tables(engine)
        return cls(
            build_session_factory(engine),
            FanoutHub(config.subscriber_queue_size),
            config=config,
            engine=engine,
        )

    def close(self) -> None:
        """End all subscriptions and dispose of the engine if we own one."""
        self.hub.close()
        if self.engine is not None:
            self.engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Storage failure: %s", exc, exc_info=True)
            raise StorageUnavailableError() from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # --- Inbox lifecycle ------------------------------------------------------------
    def create_inbox(self, name: str | None = None) -> InboxCreated:
        """Create an inbox and return it with both credentials."""
        with self._session() as db:
            inbox = self.lifecycle.create(db, name)
            return InboxCreated(
                id=inbox.id,
                name=inbox.name,
                public_key=inbox.public_key,
                private_secret=inbox.private_secret,
                created_at=inbox.created_at,
                endpoint_url=self.config.endpoint_url(inbox.id),
                monitor_url=self.config.monitor_url(inbox.id),
            )

    def list_inboxes(self, limit: int | None = None) -> list[InboxPublic]:
        """Return public metadata of the newest inboxes; never secrets."""
        limit = max(1, min(limit or self.config.list_inboxes_limit, self.config.query_max_limit))
        with self._session() as db:
            return [InboxPublic.model_validate(inbox) for inbox in self.lifecycle.list_public(db, limit)]

    def get_inbox(self, inbox_id: str, private_secret: str | None) -> InboxDetail:
        """Return an inbox's public metadata and message count to its owner."""
        with self._session() as db:
            inbox = self.gate.authorize_owner(db, inbox_id, private_secret)
            return InboxDetail(
                inbox=InboxPublic.model_validate(inbox),
                message_count=self.log.count(db, inbox_id),
            )

    def delete_inbox(self, inbox_id: str, private_secret: str | None) -> int:
        """Delete an inbox, cascade its messages and end its subscriptions.

        Returns:
            Number of messages removed
        """
        with self._session() as db:
            self.gate.authorize_owner(db, inbox_id, private_secret)
            removed = self.lifecycle.delete(db, inbox_id)
        self.hub.close_inbox(inbox_id)
        return removed

    # --- Ingestion ------------------------------------------------------------------
    def _publish(self, message: Message) -> None:
        try:
            self.hub.publish(message.inbox_id, MessageRecord.model_validate(message))
        except Exception:  # pragma: no cover - fan-out must never fail an append
            logger.exception("Fan-out failed for message %s", message.id)

    def _ingest(
        self,
        inbox_id: str,
        key: str | None,
        load_body: Callable[[], Any],
        headers: Mapping[str, str] | None,
        method: str,
    ) -> MessageRecord:
        with self._session() as db:
            self.gate.authorize_sender(db, inbox_id, key)
            envelope = validate_envelope(load_body())
            message = self.log.append(
                db,
                inbox_id,
                filter_headers(headers),
                envelope,
                method,
                notify=self._publish,
            )
            return MessageRecord.model_validate(message)

    def ingest(
        self,
        inbox_id: str,
        key: str | None,
        body: Any,
        headers: Mapping[str, str] | None = None,
        method: str = "POST",
    ) -> MessageRecord:
        """Authorize, validate, append and fan out an already decoded body."""
        return self._ingest(inbox_id, key, lambda: body, headers, method)

    def ingest_raw(
        self,
        inbox_id: str,
        key: str | None,
        raw_body: bytes | str,
        headers: Mapping[str, str] | None = None,
        method: str = "POST",
    ) -> MessageRecord:
        """Like `ingest`, decoding the JSON body only once the key checks out."""
        return self._ingest(inbox_id, key, lambda: parse_json_body(raw_body), headers, method)

    def send_message(
        self,
        inbox_id: str,
        public_key: str | None,
        source: str,
        topic: str,
        ref: str | None = None,
        payload: Any = _OMITTED,
    ) -> MessageRecord:
        """Build an envelope from its fields and deliver it through ingestion.

        `payload` is left out of the envelope only when not passed at all; an
        explicit None is stored as JSON null, as it would be through `ingest`.
        """
        envelope: dict[str, Any] = {"source": source, "topic": topic}
        if ref is not None:
            envelope["ref"] = ref
        if payload is not _OMITTED:
            envelope["payload"] = payload
        return self.ingest(inbox_id, public_key, envelope, headers=TOOL_HEADERS)

    # --- Retrieval ------------------------------------------------------------------
    def get_messages(
        self,
        inbox_id: str,
        private_secret: str | None,
        limit: int | None = None,
        topic: str | None = None,
        source: str | None = None,
        ref: str | None = None,
    ) -> list[MessageRecord]:
        """Return the owner's newest messages matching the optional filters."""
        filters = MessageFilters(topic=topic, source=source, ref=ref)
        with self._session() as db:
            self.gate.authorize_owner(db, inbox_id, private_secret)
            messages = self.queries.query(
                db,
                inbox_id,
                limit or self.config.query_default_limit,
                filters,
            )
            return [MessageRecord.model_validate(message) for message in messages]

    # --- Live subscriptions ---------------------------------------------------------
    def authorize_owner(self, inbox_id: str, private_secret: str | None) -> None:
        """Raise unless `private_secret` is the owner credential of the inbox."""
        with self._session() as db:
            self.gate.authorize_owner(db, inbox_id, private_secret)

    def _subscription_backlog(self, inbox_id: str, after: str | None) -> list[MessageRecord]:
        with self._session() as db:
            if db.query(Inbox.id).filter(Inbox.id == inbox_id).first() is None:
                raise InboxNotFoundError()
            if not after:
                return []
            return [
                MessageRecord.model_validate(message)
                for message in self.log.list_after(db, inbox_id, after)
            ]

    async def subscribe(
        self,
        inbox_id: str,
        private_secret: str | None,
        after: str | None = None,
    ) -> Subscription:
        """Open a live subscription for the inbox owner.

        The subscription is registered before the inbox is re-checked and any
        backlog after message `after` is loaded, so nothing appended in
        between is missed and a concurrent delete always ends the stream.
        """
        await run_in_threadpool(self.authorize_owner, inbox_id, private_secret)
        subscription = self.hub.subscribe(inbox_id)
        try:
            backlog = await run_in_threadpool(self._subscription_backlog, inbox_id, after)
        except BaseException:
            subscription.close()
            raise
        subscription.prime(backlog)
        return subscription

    # --- Health -----------------------------------------------------------------------
    def ping(self) -> bool:
        """Return True if the database answers."""
        try:
            with self._session() as db:
                db.execute(text("SELECT 1"))
        except StorageUnavailableError:
            return False
        return True
