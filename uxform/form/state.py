from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Tuple
import asyncio

from uxform.exceptions import InvalidStrategyError


class FormStatus(str, Enum):
    UNTOUCHED = "untouched"
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class Strategy(str, Enum):
    """
    Which user action is allowed to make a field's feedback visible.

    The strategy only gates visibility; validity is always computed.
    """
    ON_CHANGE = "onChange"
    ON_SUCCESS = "onSuccess"
    ON_BLUR = "onBlur"
    ON_SUCCESS_OR_BLUR = "onSuccessOrBlur"
    ON_SUBMIT = "onSubmit"

    @classmethod
    def coerce(cls, value) -> "Strategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(strategy.value for strategy in cls)
            raise InvalidStrategyError(f"Unknown validation strategy {value!r}. Expected one of: {allowed}.")


# Strategies allowed to flip a field to talkative for each trigger
CHANGE_GATE: Tuple[Strategy, ...] = (Strategy.ON_CHANGE,)
BLUR_GATE: Tuple[Strategy, ...] = (Strategy.ON_BLUR, Strategy.ON_SUCCESS_OR_BLUR)
SUCCESS_GATE: Tuple[Strategy, ...] = (Strategy.ON_SUCCESS, Strategy.ON_SUCCESS_OR_BLUR)


class ValidityKind(str, Enum):
    UNKNOWN = "unknown"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class Validity:
    kind: ValidityKind
    error: Any = None

    @classmethod
    def invalid(cls, error: Any) -> "Validity":
        return cls(ValidityKind.INVALID, error)

    @classmethod
    def from_result(cls, error: Any) -> "Validity":
        return cls.invalid(error) if error is not None else VALID


UNKNOWN = Validity(ValidityKind.UNKNOWN)
VALIDATING = Validity(ValidityKind.VALIDATING)
VALID = Validity(ValidityKind.VALID)


@dataclass(frozen=True)
class FieldState:
    """Internal state of one field. ``value`` is stored unsanitized."""
    value: Any
    talkative: bool = False
    validity: Validity = UNKNOWN

    def evolve(self, **changes) -> "FieldState":
        return replace(self, **changes)


@dataclass(frozen=True)
class FieldView:
    """Projected state of a field, as shown to presentation consumers."""
    value: Any
    validating: bool = False
    valid: bool = False
    error: Any = None


@dataclass(frozen=True)
class Immediate:
    """A validator answered synchronously with ``error`` (``None`` when valid)."""
    error: Any = None

    def unwrap(self) -> Any:
        return self.error


@dataclass(frozen=True)
class Deferred:
    """A validator answered with an awaitable; ``future`` resolves to the error or ``None``."""
    future: asyncio.Future = field(compare=False)

    def unwrap(self) -> asyncio.Future:
        return self.future
