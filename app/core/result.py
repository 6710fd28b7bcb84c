"""
Typed results for expected domain rejections.

Ledger and verification operations return a Result instead of raising for
conditions the caller is expected to handle. The API layer turns a rejected
Result into the matching HTTP exception with unwrap().
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Type, TypeVar

from atams.exceptions import (
    AppException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnprocessableEntityException,
)

T = TypeVar("T")


class Rejection(str, Enum):
    ALREADY_ACTIVE = "already_active"
    NO_ACTIVE_SESSION = "no_active_session"
    OUTSIDE_GEOFENCE = "outside_geofence"
    NOT_FOUND = "not_found"
    NOT_YOURS = "not_yours"
    ALREADY_RESOLVED = "already_resolved"
    SESSION_ALREADY_PENDING = "session_already_pending"
    NOT_ELIGIBLE = "not_eligible"


REJECTION_EXCEPTIONS: dict[Rejection, Type[AppException]] = {
    Rejection.ALREADY_ACTIVE: ConflictException,
    Rejection.ALREADY_RESOLVED: ConflictException,
    Rejection.SESSION_ALREADY_PENDING: ConflictException,
    Rejection.OUTSIDE_GEOFENCE: UnprocessableEntityException,
    Rejection.NOT_ELIGIBLE: UnprocessableEntityException,
    Rejection.NOT_FOUND: NotFoundException,
    Rejection.NO_ACTIVE_SESSION: NotFoundException,
    Rejection.NOT_YOURS: ForbiddenException,
}


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    rejection: Optional[Rejection] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.rejection is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, rejection: Rejection, detail: str = "") -> "Result[T]":
        return cls(rejection=rejection, detail=detail or rejection.value.replace("_", " ").capitalize())

    def unwrap(self) -> T:
        """Return the value or raise the HTTP exception mapped to the rejection"""
        if self.rejection is not None:
            raise REJECTION_EXCEPTIONS[self.rejection](
                message=self.detail, details={"code": self.rejection.value}
            )
        return self.value
