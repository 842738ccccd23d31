"""Broker services: credentials, validation, storage, access control and fan-out."""

from .access_gate import AccessGate
from .broker import InboxBroker
from .credentials import CredentialStore, Tier
from .fanout import FanoutHub, Subscription
from .inbox_locks import InboxLocks
from .lifecycle import InboxLifecycle
from .message_log import MessageLog
from .query import MessageFilters, QueryEngine
from .validator import envelope_errors, validate_envelope

__all__ = [
    "AccessGate",
    "CredentialStore",
    "FanoutHub",
    "InboxBroker",
    "InboxLifecycle",
    "InboxLocks",
    "MessageFilters",
    "MessageLog",
    "QueryEngine",
    "Subscription",
    "Tier",
    "envelope_errors",
    "validate_envelope",
]
