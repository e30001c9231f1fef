"""Uniform ``{data, error}`` result returned by fallible service operations."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from fastapi import HTTPException

from allowance.core.errors import AllowanceError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    data: T | None = None
    error: AllowanceError | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, data: T | None = None) -> "Result[T]":
        return cls(data=data, error=None)

    @classmethod
    def fail(cls, error: AllowanceError) -> "Result[T]":
        return cls(data=None, error=error)


def http_error(error: AllowanceError) -> HTTPException:
    headers = None
    if error.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(status_code=error.status_code, detail=error.message, headers=headers)


def unwrap(result: Result[T]) -> T:
    """Return the data of a successful result or raise the matching HTTPException."""
    if result.error is not None:
        raise http_error(result.error)
    return result.data
