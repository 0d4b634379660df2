"""Ok/Err values for operations whose failure is an expected outcome.

Lookups by identifier (acknowledging an alert, resolving an incident) and
best-effort store reads return one of these instead of raising, so callers
decide whether a miss is an HTTP 404, a log line, or nothing at all.
"""

from typing import TYPE_CHECKING, Any, Generic, NoReturn, TypeVar

from attrs import frozen
from beartype import beartype

T = TypeVar("T")
E = TypeVar("E")


@frozen
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @beartype
    def is_ok(self) -> bool:
        return True

    @beartype
    def is_err(self) -> bool:
        return False

    @property
    def ok_value(self) -> T:
        """The carried value."""
        return self.value

    @property
    def err_value(self) -> None:
        return None

    def unwrap(self) -> T:
        """Return the carried value."""
        return self.value


@frozen
class Err(Generic[E]):
    """Failed outcome carrying a reason, usually a message string."""

    error: E

    @beartype
    def is_ok(self) -> bool:
        return False

    @beartype
    def is_err(self) -> bool:
        return True

    @property
    def ok_value(self) -> None:
        return None

    @property
    def err_value(self) -> E:
        """The failure reason."""
        return self.error

    def unwrap(self) -> NoReturn:
        """Raise, since there is no value to return."""
        raise ValueError(f"Called unwrap on Err value: {self.error}")


if TYPE_CHECKING:
    Result = Ok[T] | Err[E]
else:

    class Result:
        """Runtime stand-in so ``Result[X, Y]`` annotations check as Ok | Err."""

        def __class_getitem__(cls, params: Any) -> Any:
            return Ok | Err
