"""
Credential selectors.

A selector answers "is a key selected?", runs the flow that lets the
user pick one, and hands out the current key. The gate only talks to
the CredentialSelector protocol, so tests substitute a fake.
"""

import asyncio
import getpass
import logging
import os
from typing import Callable, Optional, Protocol

from core.config import CREDENTIAL_ENV_VARS

logger = logging.getLogger(__name__)


class CredentialSelectionError(Exception):
    """Raised when the selection flow cannot produce a credential."""


class CredentialSelector(Protocol):
    async def has_selection(self) -> bool: ...

    async def open_selection_flow(self) -> None: ...

    def current_credential(self) -> Optional[str]: ...

    def reject(self, credential: str) -> None: ...


class ApiKeySelector:
    """
    API key selector backed by the environment and a terminal prompt.

    The key is looked up in the environment first. The selection flow
    asks for a key on the terminal (without echo) and keeps it in memory
    for the rest of the session; nothing is written to disk.

    A key the service has rejected is skipped for the rest of the
    session, so a bad environment key cannot silently count as selected
    again and the user is prompted instead.
    """

    def __init__(
        self,
        env_vars: tuple[str, ...] = CREDENTIAL_ENV_VARS,
        prompt: Callable[[str], str] = getpass.getpass,
    ):
        self.env_vars = env_vars
        self._prompt = prompt
        self._session_key: Optional[str] = None
        self._rejected: set[str] = set()

    def current_credential(self) -> Optional[str]:
        if self._session_key and self._session_key not in self._rejected:
            return self._session_key
        for name in self.env_vars:
            value = os.getenv(name, "")
            if value and value not in self._rejected:
                return value
        return None

    async def has_selection(self) -> bool:
        return self.current_credential() is not None

    async def open_selection_flow(self) -> None:
        try:
            entered = await asyncio.to_thread(self._prompt, "Google API key: ")
        except (EOFError, KeyboardInterrupt) as e:
            raise CredentialSelectionError("API key selection was cancelled") from e

        key = (entered or "").strip()
        if not key:
            raise CredentialSelectionError("No API key entered")
        if key in self._rejected:
            raise CredentialSelectionError("That API key was already rejected")

        self._session_key = key
        logger.info("API key selected for this session")

    def reject(self, credential: str) -> None:
        """Stop offering a key the service refused."""
        self._rejected.add(credential)
        if self._session_key == credential:
            self._session_key = None
        logger.info("Rejected API key will not be used again this session")
