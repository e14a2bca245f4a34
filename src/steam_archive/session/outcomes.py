""" outcomes.py

Authentication results as a tagged union instead of exception subclasses. The scheduler dispatches on the variant with isinstance.

Which results count as a terminal denial is decided here, in one place. A terminal denial means retrying with the same credentials cannot work, so the account is retired.
"""
from typing import FrozenSet, NamedTuple, Union

from ..errors import AuthenticationError
from ..storage.records import AccountRecord
from .enumerations import EResult

TERMINAL_DENIALS: FrozenSet[EResult] = frozenset({
    EResult.AccessDenied,
    EResult.AccountDisabled,
    EResult.InvalidPassword,
    EResult.AccountLogonDeniedVerifiedEmailRequired,
    EResult.AccountLoginDeniedNeedTwoFactor,
})


class AuthSuccess(NamedTuple):
    account: AccountRecord  # authoritative account info, including the (possibly rotated) refresh token.


class TerminalDenial(NamedTuple):
    result: EResult


class TransientFailure(NamedTuple):
    error: Exception


AuthOutcome = Union[AuthSuccess, TerminalDenial, TransientFailure]


def is_terminal(result: EResult) -> bool:
    return result in TERMINAL_DENIALS


def outcome_from_result(result: EResult) -> AuthOutcome:
    """Outcome for a failed logon result code."""
    if isinstance(result, int):
        result = EResult(result)
    assert result != EResult.OK
    if is_terminal(result):
        return TerminalDenial(result)
    return TransientFailure(AuthenticationError(result))


def classify_auth_error(error: Exception) -> AuthOutcome:
    """Fold an exception raised during connect/authenticate into an outcome."""
    if isinstance(error, AuthenticationError):
        return outcome_from_result(error.result)
    return TransientFailure(error)
