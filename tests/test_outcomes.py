from __future__ import annotations

import pytest

from steam_archive.errors import AuthenticationError, SteamConnectionError
from steam_archive.session.enumerations import EResult
from steam_archive.session.outcomes import (TERMINAL_DENIALS, TerminalDenial, TransientFailure,
                                            classify_auth_error, is_terminal, outcome_from_result)


@pytest.mark.parametrize("result", sorted(TERMINAL_DENIALS))
def test_terminal_results(result: EResult) -> None:
    assert is_terminal(result)
    assert outcome_from_result(result) == TerminalDenial(result)


@pytest.mark.parametrize("result", [EResult.Timeout, EResult.TryAnotherCM, EResult.RateLimitExceeded, EResult.ServiceUnavailable])
def test_retryable_results(result: EResult) -> None:
    outcome = outcome_from_result(result)

    assert isinstance(outcome, TransientFailure)
    assert outcome.error.result == result


def test_raw_result_codes_are_accepted() -> None:
    assert outcome_from_result(5) == TerminalDenial(EResult.InvalidPassword)


def test_unknown_result_code_is_transient() -> None:
    assert isinstance(outcome_from_result(100000), TransientFailure)


def test_classify_authentication_error() -> None:
    assert classify_auth_error(AuthenticationError(EResult.AccessDenied)) == TerminalDenial(EResult.AccessDenied)


def test_classify_other_errors_as_transient() -> None:
    error = SteamConnectionError("socket closed")

    outcome = classify_auth_error(error)

    assert isinstance(outcome, TransientFailure)
    assert outcome.error is error
