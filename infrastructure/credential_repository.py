"""Persistence of the scanned server credential."""

from __future__ import annotations

from loguru import logger

from core.errors import PersistenceFailure
from core.models import Credential

TOKEN_KEY = "api_token"
SERVER_URL_KEY = "server_url"


class CredentialRepository:
    """Store the token and server URL as two scalar records."""

    def __init__(self, store) -> None:
        self._store = store

    def load(self) -> Credential | None:
        """Return the stored credential, or None if either field is missing."""
        try:
            token = self._store.get(TOKEN_KEY)
            server_url = self._store.get(SERVER_URL_KEY)
        except PersistenceFailure as ex:
            logger.warning("Reading credential failed: {}", ex)
            return None
        if token and server_url:
            return Credential(token=token, server_url=server_url)
        return None

    def save(self, credential: Credential) -> None:
        """Write both credential fields.

        Raises:
            PersistenceFailure: If the store cannot be written.
        """
        self._store.set(TOKEN_KEY, credential.token)
        self._store.set(SERVER_URL_KEY, credential.server_url)
