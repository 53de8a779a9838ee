from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from uxform.exceptions import ConfigurationError
from uxform.form.state import Strategy
from uxform.form.validator import Validator, ValidatorFn, combine_validators

DEFAULT_STRATEGY = Strategy.ON_SUCCESS_OR_BLUR
# Time in milliseconds to wait before running debounced validation
DEFAULT_DEBOUNCE_MS = 0


def identity(value: Any) -> Any:
    return value


def same_value(value1: Any, value2: Any) -> bool:
    """Default equality used to detect stale validation results."""
    return value1 is value2 or value1 == value2


class FieldConfig:
    """
    Settings for a single field.

    Args:
        initial_value: The initial value, or a zero-argument callable returning it
        strategy: Which trigger may reveal validation feedback (see Strategy)
        debounce_interval_ms: Delay before validating after an edit, 0 to validate at once
        equality_fn: Compares sanitized values to decide if an async result is stale
        sanitize: Transforms the raw value before validation and submission
        validate: ``fn(value)`` or ``fn(value, helpers)`` returning None, an error,
                  or an awaitable of either. None means the field is always valid.
    """

    __slots__ = ("initial_value", "strategy", "debounce_interval_ms", "equality_fn", "sanitize", "validate")

    def __init__(
        self,
        initial_value: Any = None,
        strategy: Union[Strategy, str, None] = DEFAULT_STRATEGY,
        debounce_interval_ms: float = DEFAULT_DEBOUNCE_MS,
        equality_fn: Optional[Callable[[Any, Any], bool]] = None,
        sanitize: Optional[Callable[[Any], Any]] = None,
        validate: Optional[ValidatorFn] = None,
    ):
        if debounce_interval_ms is None or debounce_interval_ms < 0:
            raise ConfigurationError(f"debounce_interval_ms must be a positive number or 0, got {debounce_interval_ms!r}.")

        self.initial_value = initial_value
        self.strategy = Strategy.coerce(DEFAULT_STRATEGY if strategy is None else strategy)
        self.debounce_interval_ms = debounce_interval_ms
        self.equality_fn = equality_fn or same_value
        self.sanitize = sanitize or identity
        self.validate = validate

    def get_initial_value(self) -> Any:
        value = self.initial_value
        return value() if callable(value) else value

    @property
    def has_validator(self) -> bool:
        return self.validate is not None

    def __repr__(self):
        return (
            f"FieldConfig(initial_value={self.initial_value!r}, strategy={self.strategy.value!r}, "
            f"debounce_interval_ms={self.debounce_interval_ms!r})"
        )


class Field:
    """
    Fluent builder for a FieldConfig.

    Rules are applied in the order they are declared, the first error wins:
        schema.field("email").initial_value("").trim().required().email()
    """
    def __init__(self, name: str):
        self.name = name
        self.initial_value_attr: Any = None
        self.strategy_attr: Union[Strategy, str] = DEFAULT_STRATEGY
        self.debounce_ms: float = DEFAULT_DEBOUNCE_MS
        self.equality_fn: Optional[Callable[[Any, Any], bool]] = None
        self.sanitizers: List[Callable[[Any], Any]] = []
        self.validation_functions: List[ValidatorFn] = []

    def initial_value(self, value: Any) -> 'Field':
        """Sets the initial value, or a zero-argument callable producing it."""
        self.initial_value_attr = value
        return self

    def strategy(self, strategy: Union[Strategy, str]) -> 'Field':
        self.strategy_attr = Strategy.coerce(strategy)
        return self

    def debounce(self, interval_ms: float) -> 'Field':
        self.debounce_ms = interval_ms
        return self

    def equality(self, equality_fn: Callable[[Any, Any], bool]) -> 'Field':
        self.equality_fn = equality_fn
        return self

    def sanitize(self, sanitizer: Callable[[Any], Any]) -> 'Field':
        """Adds a sanitizer. Sanitizers run in declaration order."""
        self.sanitizers.append(sanitizer)
        return self

    def trim(self) -> 'Field':
        """Strips surrounding whitespace from string values before validation and submission."""
        return self.sanitize(lambda value: value.strip() if isinstance(value, str) else value)

    # -- Rules ---
    def required(self, error_message: str = "This field is required.") -> 'Field':
        return self.validate(Validator.required(error_message))

    def min_length(self, length: int, error_message: str = None) -> 'Field':
        return self.validate(Validator.min_length(length, error_message))

    def max_length(self, length: int, error_message: str = None) -> 'Field':
        return self.validate(Validator.max_length(length, error_message))

    def email(self, error_message: str = "Must be a valid email address.") -> 'Field':
        return self.validate(Validator.email(error_message))

    def url(self, error_message: str = "Must be a valid URL.") -> 'Field':
        return self.validate(Validator.url(error_message))

    def regex(self, pattern: str, error_message: str = "Invalid format.") -> 'Field':
        return self.validate(Validator.regex(pattern, error_message))

    def min_value(self, min_val: Union[int, float], error_message: str = None) -> 'Field':
        return self.validate(Validator.min_value(min_val, error_message))

    def max_value(self, max_val: Union[int, float], error_message: str = None) -> 'Field':
        return self.validate(Validator.max_value(max_val, error_message))

    def validate(self, validation_func: ValidatorFn) -> 'Field':
        """Adds a custom validator: ``fn(value)`` or ``fn(value, helpers)``, sync or async."""
        self.validation_functions.append(validation_func)
        return self
    # -- End Rules ---

    def to_config(self) -> FieldConfig:
        sanitizers = list(self.sanitizers)

        def sanitize(value: Any) -> Any:
            for sanitizer in sanitizers:
                value = sanitizer(value)
            return value

        validate = None
        if len(self.validation_functions) == 1:
            validate = self.validation_functions[0]
        elif self.validation_functions:
            validate = combine_validators(*self.validation_functions)

        return FieldConfig(
            initial_value=self.initial_value_attr,
            strategy=self.strategy_attr,
            debounce_interval_ms=self.debounce_ms,
            equality_fn=self.equality_fn,
            sanitize=sanitize if sanitizers else None,
            validate=validate,
        )


class Schema:
    """
    Declares the fields of a form, in order.
    """
    def __init__(self):
        self.fields: Dict[str, Field] = {}

    def field(self, name: str) -> Field:
        """Returns the builder for ``name``, declaring the field on first use."""
        if name not in self.fields:
            self.fields[name] = Field(name)
        return self.fields[name]

    def to_config(self) -> Dict[str, FieldConfig]:
        return {name: field.to_config() for name, field in self.fields.items()}


ConfigInput = Union[Schema, Mapping[str, Union[FieldConfig, Mapping[str, Any]]]]


def normalize_config(config: ConfigInput) -> Dict[str, FieldConfig]:
    """
    Turns any accepted configuration shape into an ordered ``{name: FieldConfig}`` dict.

    Accepts a Schema, or a mapping whose values are FieldConfig instances or
    dicts of FieldConfig keyword arguments.
    """
    if isinstance(config, Schema):
        return config.to_config()

    if not isinstance(config, Mapping):
        raise ConfigurationError(f"Form configuration must be a Schema or a mapping, got {type(config).__name__}.")

    normalized = {}
    for name, field_config in config.items():
        if isinstance(field_config, FieldConfig):
            normalized[name] = field_config
        elif isinstance(field_config, Mapping):
            try:
                normalized[name] = FieldConfig(**field_config)
            except TypeError as e:
                raise ConfigurationError(f"Invalid configuration for field '{name}': {e}") from e
        else:
            raise ConfigurationError(
                f"Configuration for field '{name}' must be a FieldConfig or a mapping, got {type(field_config).__name__}."
            )
    return normalized
