"""Identity state pushed to subscribers as the user signs in and out."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .models import LOCAL_OWNER, Identity, OwnerKey, RemoteOwner

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Identity | None], Awaitable[None]]


def owner_key_for(identity: Identity | None) -> OwnerKey:
    """
    Map an identity to the owner key its tasks are stored under.

    No identity means guest tasks kept in memory. Any issued identity,
    anonymous ones included, owns a persisted collection.
    """
    if identity is None:
        return LOCAL_OWNER
    return RemoteOwner(identity.owner_id)


class IdentityProvider:
    """Holds the current identity and pushes changes to async listeners."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity
        self._listeners: list[IdentityListener] = []

    @property
    def current(self) -> Identity | None:
        return self._identity

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """
        Register an async listener for identity changes.

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in(self, owner_id: str, is_ephemeral: bool = False) -> Identity:
        """Switch to an account identity and notify listeners."""
        if not owner_id:
            raise ValueError("owner_id is required")
        identity = Identity(owner_id=owner_id, is_ephemeral=is_ephemeral)
        await self._publish(identity)
        return identity

    async def sign_out(self) -> None:
        """Drop the current identity and notify listeners."""
        await self._publish(None)

    async def _publish(self, identity: Identity | None) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        logger.info(f"Identity changed: {identity.owner_id if identity else 'guest'}")

        results = await asyncio.gather(
            *(listener(identity) for listener in list(self._listeners)),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Identity listener failed: {result}")
