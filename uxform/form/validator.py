from typing import Any, Callable, Iterable, Mapping, Optional, Union
import inspect
import re

from uxform.utils.async_task import is_deferred

# A validator returns None when the value is valid, anything else is the error.
# It may also return an awaitable resolving to the same.
ValidatorFn = Callable[..., Any]


def accepts_helpers(fn: Callable) -> bool:
    """Checks whether ``fn`` can be called as ``fn(value, helpers)``."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures take a single value
        return False

    # A defaulted parameter is only filled when named ``helpers``:
    # ``def at_least(value, minimum=3)`` takes a single value
    required_positional = 0
    for index, parameter in enumerate(signature.parameters.values()):
        if parameter.kind == inspect.Parameter.VAR_POSITIONAL:
            return True
        if parameter.kind not in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            continue
        if index == 1 and parameter.name == "helpers":
            return True
        if parameter.default is inspect.Parameter.empty:
            required_positional += 1
    return required_positional >= 2


def call_validator(fn: ValidatorFn, value: Any, helpers: Any = None) -> Any:
    if helpers is not None and accepts_helpers(fn):
        return fn(value, helpers)
    return fn(value)


def combine_validators(*validators: Union[ValidatorFn, bool, None]) -> ValidatorFn:
    """
    Combines validators into one that returns the first error.

    Falsy entries are skipped, so rules can be toggled inline:
        combine_validators(Validator.required(), is_company and check_vat)

    When a validator answers with an awaitable, the rest of the chain runs
    after it settles and the combined validator returns a coroutine.
    """
    active = [fn for fn in validators if fn]

    def validate(value: Any, helpers: Any = None) -> Any:
        for index, fn in enumerate(active):
            result = call_validator(fn, value, helpers)

            if is_deferred(result):
                return _continue_chain(result, active[index + 1:], value, helpers)
            if result is not None:
                return result
        return None

    return validate


async def _continue_chain(pending, remaining, value, helpers):
    error = await pending
    if error is not None:
        return error

    result = combine_validators(*remaining)(value, helpers)
    if is_deferred(result):
        return await result
    return result


def has_defined_keys(mapping: Mapping[str, Any], keys: Iterable[str]) -> bool:
    """Checks that every key is present in ``mapping`` with a value other than None."""
    return all(mapping.get(key) is not None for key in keys)


class Validator:
    """
    Provides a set of built-in validation rules.

    Every rule is a factory returning a validator function.
    """

    @staticmethod
    def required(error_message: str = "This field is required.") -> ValidatorFn:
        """Rejects None and empty strings, lists, dicts, tuples and sets."""
        def validate(value: Any) -> Optional[str]:
            if value is None:
                return error_message
            if isinstance(value, (str, list, dict, tuple, set)) and not value:
                return error_message
            # 0 and False are values, not emptiness
            return None
        return validate

    @staticmethod
    def min_length(length: int, error_message: str = None) -> ValidatorFn:
        """Creates a validation function that checks for minimum length."""
        def validate(value: Any) -> Optional[str]:
            # Allow None values to pass, required validator should handle them
            if value is not None and len(value) < length:
                return error_message or f"Must be at least {length} characters long."
            return None
        return validate

    @staticmethod
    def max_length(length: int, error_message: str = None) -> ValidatorFn:
        """Creates a validation function that checks for maximum length."""
        def validate(value: Any) -> Optional[str]:
            if value is not None and len(value) > length:
                return error_message or f"Must be at most {length} characters long."
            return None
        return validate

    @staticmethod
    def regex(pattern: str, error_message: str = "Invalid format.") -> ValidatorFn:
        """Creates a validation function that checks against a regex pattern."""
        compiled_pattern = re.compile(pattern)
        def validate(value: Any) -> Optional[str]:
            # Allow None and empty values to pass
            if value is None or value == "":
                return None
            if not compiled_pattern.fullmatch(str(value)):
                return error_message
            return None
        return validate

    @staticmethod
    def email(error_message: str = "Must be a valid email address.") -> ValidatorFn:
        email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
        return Validator.regex(email_pattern, error_message)

    @staticmethod
    def url(error_message: str = "Must be a valid URL.") -> ValidatorFn:
        url_pattern = r"^https?://(?:www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b(?:[-a-zA-Z0-9()@:%_+.~#?&/=]*)$"
        return Validator.regex(url_pattern, error_message)

    @staticmethod
    def min_value(min_val: Union[int, float], error_message: str = None) -> ValidatorFn:
        """Creates a validation function that checks for minimum value."""
        def validate(value: Any) -> Optional[str]:
            if value is None or value == "":
                return None
            try:
                if float(value) < min_val:
                    return error_message or f"Must be at least {min_val}."
            except (ValueError, TypeError):
                return "Must be a valid number."
            return None
        return validate

    @staticmethod
    def max_value(max_val: Union[int, float], error_message: str = None) -> ValidatorFn:
        """Creates a validation function that checks for maximum value."""
        def validate(value: Any) -> Optional[str]:
            if value is None or value == "":
                return None
            try:
                if float(value) > max_val:
                    return error_message or f"Must be at most {max_val}."
            except (ValueError, TypeError):
                return "Must be a valid number."
            return None
        return validate

    @staticmethod
    def one_of(choices: Iterable[Any], error_message: str = None) -> ValidatorFn:
        """Creates a validation function that only accepts one of ``choices``."""
        allowed = list(choices)
        def validate(value: Any) -> Optional[str]:
            if value is None or value == "":
                return None
            if value not in allowed:
                return error_message or f"Must be one of: {', '.join(map(str, allowed))}."
            return None
        return validate
