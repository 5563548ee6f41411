"""Failure categories reported with metrics, and errors that carry them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class FailureCategory:
    """Metrics status together with the exit code it maps to."""

    metrics_status: str
    exit_code: int


API_SOURCE = "api"
SUCCESS_STATUS = "success"
FAILURE_STATUS = "failure"
COMPOSE_PARSE_FAILURE_STATUS = "failure-compose-parse"
FILE_NOT_FOUND_FAILURE_STATUS = "failure-file-not-found"
COMMAND_SYNTAX_FAILURE_STATUS = "failure-cmd-syntax"
BUILD_FAILURE_STATUS = "failure-build"
PULL_FAILURE_STATUS = "failure-pull"
CANCELED_STATUS = "canceled"

FILE_NOT_FOUND_FAILURE = FailureCategory(FILE_NOT_FOUND_FAILURE_STATUS, 14)
COMPOSE_PARSE_FAILURE = FailureCategory(COMPOSE_PARSE_FAILURE_STATUS, 15)
COMMAND_SYNTAX_FAILURE = FailureCategory(COMMAND_SYNTAX_FAILURE_STATUS, 16)
BUILD_FAILURE = FailureCategory(BUILD_FAILURE_STATUS, 17)
PULL_FAILURE = FailureCategory(PULL_FAILURE_STATUS, 18)

_KNOWN_FAILURES = {
    category.exit_code: category
    for category in (
        FILE_NOT_FOUND_FAILURE,
        COMPOSE_PARSE_FAILURE,
        COMMAND_SYNTAX_FAILURE,
        BUILD_FAILURE,
        PULL_FAILURE,
    )
}


def by_exit_code(exit_code: int) -> FailureCategory:
    """Failure category for a command exit code."""
    if exit_code == 0:
        return FailureCategory(SUCCESS_STATUS, 0)
    if exit_code in _KNOWN_FAILURES:
        return _KNOWN_FAILURES[exit_code]
    if exit_code == 130:
        return FailureCategory(CANCELED_STATUS, exit_code)
    return FailureCategory(FAILURE_STATUS, exit_code)


class ComposeError(Exception):
    """An error with an optional failure category for metrics."""

    def __init__(self, err: BaseException, category: FailureCategory | None = None):
        super().__init__(str(err))
        self.err = err
        self.category = category
        self.__cause__ = err

    def __str__(self) -> str:
        return str(self.err)

    def metrics_failure_category(self) -> FailureCategory:
        if self.category is not None:
            return self.category
        if any(_is_path_error(e) for e in _error_chain(self.err)):
            return FILE_NOT_FOUND_FAILURE
        return COMPOSE_PARSE_FAILURE


def _error_chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.err if isinstance(err, ComposeError) else err.__cause__


def _is_path_error(err: BaseException) -> bool:
    if isinstance(err, FileNotFoundError):
        return True
    return isinstance(err, OSError) and err.filename is not None


def wrap_compose_error(err: BaseException | None) -> ComposeError | None:
    """Wrap ``err`` in a ComposeError, or return None when there is none."""
    if err is None:
        return None
    return ComposeError(err)


def wrap_categorised_compose_error(
    err: BaseException | None, failure: FailureCategory
) -> ComposeError | None:
    """Wrap ``err`` with an explicit failure category, or return None."""
    if err is None:
        return None
    return ComposeError(err, failure)