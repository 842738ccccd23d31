"""Shared API dependencies for credential extraction and broker access."""

from typing import Annotated

from fastapi import Depends, Header, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from inbox_broker.services.broker import InboxBroker

# Owners present their private secret as a Bearer token (or ?secret=).
bearer_scheme = HTTPBearer(auto_error=False)


def get_broker(request: Request) -> InboxBroker:
    """Return the broker constructed on application startup."""
    return request.app.state.broker


def get_owner_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    secret: Annotated[str | None, Query(description="Inbox private secret")] = None,
) -> str | None:
    """Extract the private secret from the Authorization header or query string.

    Absence is reported by the access gate, not here, so that a missing
    secret and a wrong secret stay distinguishable.
    """
    if credentials is not None:
        return credentials.credentials
    return secret


def get_inbox_key(
    x_inbox_key: Annotated[str | None, Header(description="Inbox public key")] = None,
    key: Annotated[str | None, Query(description="Inbox public key")] = None,
) -> str | None:
    """Extract the sender key from the `x-inbox-key` header or `?key=`."""
    return x_inbox_key or key


BrokerDep = Annotated[InboxBroker, Depends(get_broker)]
OwnerSecretDep = Annotated[str | None, Depends(get_owner_secret)]
InboxKeyDep = Annotated[str | None, Depends(get_inbox_key)]
