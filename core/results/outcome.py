from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")

SUCCESS = "success"
PARTIAL = "partial"
FAILURE = "failure"


@dataclass
class Outcome(Generic[T]):
    """
    Result of a best-effort operation. A `partial` outcome carries a value
    together with the errors that were tolerated while producing it.
    """

    status: str
    value: Optional[T] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(SUCCESS, value)

    @classmethod
    def partial(cls, value: T, errors: List[str]) -> "Outcome[T]":
        return cls(PARTIAL, value, list(errors))

    @classmethod
    def failure(cls, error: str) -> "Outcome[T]":
        return cls(FAILURE, None, [error])

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS
