from .exceptions import (
    ConfigurationError,
    InvalidStrategyError,
    UnknownFieldError,
    UxFormError,
    set_global_error_handler,
)
from .form import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_STRATEGY,
    Field,
    FieldBinding,
    FieldConfig,
    FieldView,
    Form,
    FormStatus,
    Schema,
    Strategy,
    ValidationHelpers,
    Validator,
    combine_validators,
    create_form,
    has_defined_keys,
)

__version__ = "0.1.0"

get_version = lambda: __version__
