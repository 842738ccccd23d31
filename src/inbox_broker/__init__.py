"""Credential-gated JSON event inboxes with live fan-out."""

__version__ = "0.1.0"
