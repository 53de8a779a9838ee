from .form import FieldBinding, Form, ValidationHelpers, create_form
from .schema import DEFAULT_DEBOUNCE_MS, DEFAULT_STRATEGY, Field, FieldConfig, Schema
from .state import FieldView, FormStatus, Strategy
from .validator import Validator, combine_validators, has_defined_keys

__all__ = [
    'create_form',
    'Form',
    'FieldBinding',
    'ValidationHelpers',
    'Schema',
    'Field',
    'FieldConfig',
    'DEFAULT_STRATEGY',
    'DEFAULT_DEBOUNCE_MS',
    'FieldView',
    'FormStatus',
    'Strategy',
    'Validator',
    'combine_validators',
    'has_defined_keys',
]
