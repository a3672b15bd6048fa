"""
Credential Gate

Single source of truth for whether generation is currently permitted.
Generation may only start while the gate is SELECTED; a downstream
authorization failure calls invalidate() and forces re-selection.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from .selector import CredentialSelector

logger = logging.getLogger(__name__)


class CredentialState(str, Enum):
    """Whether a usable credential is selected."""
    UNKNOWN = "unknown"
    CHECKING = "checking"
    UNSELECTED = "unselected"
    SELECTED = "selected"


class CredentialGate:
    """
    Tracks credential selection and gates all generation activity.

    State is single-writer by convention. If check_initial(),
    request_selection() and invalidate() interleave, the last write wins;
    an invalidate() that lands while a selection flow is open is
    overwritten when that flow succeeds.

    Usage:
        gate = CredentialGate(ApiKeySelector())

        state = await gate.check_initial()
        if state != CredentialState.SELECTED:
            state = await gate.request_selection()
    """

    def __init__(self, selector: Optional[CredentialSelector]):
        self.selector = selector
        self._state = CredentialState.UNKNOWN
        self._listeners: list[Callable[[CredentialState], None]] = []
        self.last_error: Optional[str] = None

    @property
    def state(self) -> CredentialState:
        return self._state

    @property
    def is_selected(self) -> bool:
        return self._state == CredentialState.SELECTED

    @property
    def credential(self) -> Optional[str]:
        """Current credential from the selector, or None."""
        if self.selector is None:
            return None
        return self.selector.current_credential()

    def subscribe(self, callback: Callable[[CredentialState], None]):
        """Register callback for state changes."""
        self._listeners.append(callback)

    def _set_state(self, new_state: CredentialState):
        old_state = self._state
        self._state = new_state
        if old_state == new_state:
            return

        logger.info(f"Credential gate: {old_state.value} -> {new_state.value}")
        for callback in list(self._listeners):
            try:
                callback(new_state)
            except Exception as e:
                logger.error(f"Credential listener error: {e}")

    async def check_initial(self) -> CredentialState:
        """
        Ask the selector once whether a credential is already selected.

        Fails closed: a missing selector or any selector error resolves
        to UNSELECTED. Never raises.
        """
        self._set_state(CredentialState.CHECKING)

        if self.selector is None:
            logger.warning("No credential selector available. Assuming no key selected.")
            self._set_state(CredentialState.UNSELECTED)
            return self._state

        try:
            has_key = await self.selector.has_selection()
        except Exception as e:
            logger.error(f"Error checking for API key: {e}")
            self.last_error = str(e)
            self._set_state(CredentialState.UNSELECTED)
            return self._state

        self._set_state(
            CredentialState.SELECTED if has_key else CredentialState.UNSELECTED
        )
        return self._state

    async def request_selection(self) -> CredentialState:
        """
        Open the selector's selection flow.

        Success moves the gate to SELECTED without re-querying the
        selector. On failure the previous state is kept, the cause is
        stored on ``last_error`` and the unchanged state is returned.
        """
        if self.selector is None:
            self.last_error = "No credential selector available"
            logger.warning(self.last_error)
            if self._state != CredentialState.SELECTED:
                self._set_state(CredentialState.UNSELECTED)
            return self._state

        try:
            await self.selector.open_selection_flow()
        except Exception as e:
            logger.error(f"Error opening API key selection: {e}")
            self.last_error = str(e)
            if self._state != CredentialState.SELECTED:
                self._set_state(CredentialState.UNSELECTED)
            return self._state

        self.last_error = None
        self._set_state(CredentialState.SELECTED)
        return self._state

    def invalidate(self):
        """
        Force UNSELECTED. Idempotent.

        The credential in use is handed back to the selector as rejected,
        so the next check_initial() cannot pick the same key up again.
        """
        if self._state != CredentialState.UNSELECTED:
            logger.warning("Credential invalidated; a new key must be selected")

        rejected = self.credential
        if rejected:
            try:
                self.selector.reject(rejected)
            except Exception as e:
                logger.error(f"Error rejecting API key: {e}")

        self._set_state(CredentialState.UNSELECTED)
