""" account_state.py

The lifecycle of one account's unit of work. A unit always ends in DONE, whatever happened on the way, and DONE is final: nothing is retried within a pass.

    IDLE -> CONNECTING -> AUTHENTICATED -> (DOWNLOADING) -> DISCONNECTING -> DONE
    CONNECTING | AUTHENTICATED -> TERMINAL_FAILURE -> DISCONNECTING
    any -> TRANSIENT_FAILURE -> DISCONNECTING
"""
import logging
from enum import IntEnum
from typing import Dict, FrozenSet

logger = logging.getLogger(__name__)


class AccountState(IntEnum):
    IDLE = 0
    CONNECTING = 1
    AUTHENTICATED = 2
    DOWNLOADING = 3
    TERMINAL_FAILURE = 4  # Steam permanently refused the credentials. The account is retired.
    TRANSIENT_FAILURE = 5  # anything else. The account is left alone and tried again next pass.
    DISCONNECTING = 6
    DONE = 7


_ALLOWED: Dict[AccountState, FrozenSet[AccountState]] = {
    AccountState.IDLE: frozenset({AccountState.CONNECTING, AccountState.TRANSIENT_FAILURE, AccountState.DISCONNECTING}),
    AccountState.CONNECTING: frozenset({AccountState.AUTHENTICATED, AccountState.TERMINAL_FAILURE, AccountState.TRANSIENT_FAILURE, AccountState.DISCONNECTING}),
    AccountState.AUTHENTICATED: frozenset({AccountState.DOWNLOADING, AccountState.TERMINAL_FAILURE, AccountState.TRANSIENT_FAILURE, AccountState.DISCONNECTING}),
    AccountState.DOWNLOADING: frozenset({AccountState.TRANSIENT_FAILURE, AccountState.DISCONNECTING}),
    AccountState.TERMINAL_FAILURE: frozenset({AccountState.TRANSIENT_FAILURE, AccountState.DISCONNECTING}),
    AccountState.TRANSIENT_FAILURE: frozenset({AccountState.DISCONNECTING}),
    AccountState.DISCONNECTING: frozenset({AccountState.DONE}),
    AccountState.DONE: frozenset(),
}


class AccountUnit:
    """Tracks where one account is in its unit of work. Remembers whether a failure happened so the outcome survives the walk to DONE."""

    def __init__(self, account_name: str):
        self.account_name = account_name
        self._state = AccountState.IDLE
        self._failure = AccountState.IDLE

    @property
    def state(self) -> AccountState:
        return self._state

    @property
    def failure(self) -> AccountState:
        """TERMINAL_FAILURE or TRANSIENT_FAILURE if either was reached, otherwise IDLE."""
        return self._failure

    def transition(self, new_state: AccountState):
        if new_state not in _ALLOWED[self._state]:
            raise ValueError(f"{self.account_name}: illegal transition {self._state.name} -> {new_state.name}")
        logger.debug("%s: %s -> %s", self.account_name, self._state.name, new_state.name)
        if new_state in (AccountState.TERMINAL_FAILURE, AccountState.TRANSIENT_FAILURE):
            self._failure = new_state
        self._state = new_state
