"""HTTP API for the Inbox Broker."""
