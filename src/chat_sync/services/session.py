"""Session identity and the transport bound to it."""
from __future__ import annotations

import logging
from typing import Callable

from chat_sync.application.exceptions import AuthFailure, DecodeFailure, NetworkFailure
from chat_sync.application.ports.api import ChatApi
from chat_sync.application.ports.token_store import TokenStore
from chat_sync.application.ports.transport import Transport
from chat_sync.domain.entities.identity import Identity

logger = logging.getLogger(__name__)

TransportFactory = Callable[[Identity, str], Transport]


class SessionIdentityHolder:
    """Holds the signed-in identity, its bearer token and its transport.

    A transport is created lazily for the current identity and is dropped
    whenever the identity or token changes, so a connection authenticated
    for one user is never handed to another.
    """

    def __init__(
        self,
        api: ChatApi,
        token_store: TokenStore,
        transport_factory: TransportFactory,
    ) -> None:
        self._api = api
        self._token_store = token_store
        self._transport_factory = transport_factory
        self._identity: Identity | None = None
        self._token: str | None = None
        self._transport: Transport | None = None

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    async def restore(self) -> Identity | None:
        """Validate a previously stored token, if any."""
        token = self._token_store.load()
        if not token:
            return None
        return await self.resolve(token)

    async def resolve(self, token: str) -> Identity | None:
        """Trust ``token`` only once the identity endpoint accepts it.

        Any auth or network failure discards the token (no retry). A
        response that cannot be decoded also discards it and is re-raised.
        """
        try:
            identity = await self._api.me(token)
        except (AuthFailure, NetworkFailure) as exc:
            logger.warning("Token validation failed, signing out: %s", exc.detail)
            await self.logout()
            return None
        except DecodeFailure:
            logger.error("Identity response could not be decoded, signing out")
            await self.logout()
            raise
        await self._adopt(token, identity)
        return identity

    async def login(self, username: str, password: str) -> Identity:
        result = await self._api.login(username, password)
        await self._adopt(result.token, result.identity)
        return result.identity

    async def signup(self, username: str, password: str) -> Identity:
        result = await self._api.signup(username, password)
        await self._adopt(result.token, result.identity)
        return result.identity

    async def logout(self) -> None:
        transport, self._transport = self._transport, None
        self._identity = None
        self._token = None
        self._token_store.clear()
        if transport is not None:
            await transport.close()
        logger.info("Signed out")

    async def transport(self) -> Transport:
        """Return the session's transport, opening it on first use."""
        if self._identity is None or self._token is None:
            raise AuthFailure("Not signed in")
        if self._transport is None:
            transport = self._transport_factory(self._identity, self._token)
            self._transport = transport
            try:
                await transport.open()
            except Exception:
                self._transport = None
                raise
        return self._transport

    async def disconnect(self) -> None:
        """Close the transport but keep the identity and stored token."""
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()

    async def _adopt(self, token: str, identity: Identity) -> None:
        if self._identity is not None and (self._identity != identity or self._token != token):
            logger.info("Identity changed from %s to %s", self._identity.id, identity.id)
            await self.logout()
        self._identity = identity
        self._token = token
        self._token_store.save(token)
        logger.info("Signed in as %s", identity.username)
