import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from uxform.core import create_signal
from uxform.exceptions import ConfigurationError, UnknownFieldError, report_error
from uxform.form.registry import CallbackRegistry, Listener
from uxform.form.schema import ConfigInput, FieldConfig, normalize_config
from uxform.form.state import (
    BLUR_GATE,
    CHANGE_GATE,
    SUCCESS_GATE,
    UNKNOWN,
    VALIDATING,
    Deferred,
    FieldState,
    FieldView,
    FormStatus,
    Immediate,
    Strategy,
    Validity,
    ValidityKind,
)
from uxform.form.validator import call_validator
from uxform.utils.async_task import AsyncTask, ScheduledTask
from uxform.utils.ref import FieldRef

logger = logging.getLogger(__name__)

Outcome = Union[Immediate, Deferred]


class ValidationHelpers:
    """
    Capabilities handed to validators as their second argument.

    Lets a validator read other fields or move focus without holding the form.
    """
    __slots__ = ("_form",)

    def __init__(self, form: 'Form'):
        self._form = form

    def focus_field(self, name: str) -> None:
        self._form.focus_field(name)

    def get_field_state(self, name: str, sanitize: bool = False) -> FieldView:
        return self._form.get_field_state(name, sanitize=sanitize)


class FieldBinding:
    """
    Connects one presentation consumer to a form field.

    Usage:
        with form.field("email") as email:
            email.ref.current = text_input
            unsubscribe = email.subscribe(redraw)
            text_input.on_text = email.on_change
            text_input.on_focus_out = email.on_blur
    """

    def __init__(self, form: 'Form', name: str):
        form._get_config(name)

        self._form = form
        self.name = name
        self._mounted = False
        self._owns_mount = False

    @property
    def ref(self) -> FieldRef:
        return self._form._refs[self.name]

    @property
    def state(self) -> FieldView:
        return self._form.get_field_state(self.name)

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self) -> 'FieldBinding':
        if not self._mounted:
            self._mounted = True
            self._owns_mount = self._form._mount(self.name)
        return self

    def unmount(self) -> None:
        if not self._mounted:
            return

        self._mounted = False
        if self._owns_mount:
            self._owns_mount = False
            self._form._unmount(self.name)

    def __enter__(self) -> 'FieldBinding':
        return self.mount()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.unmount()

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Calls ``callback()`` after every state change of this field."""
        callbacks = self._form._callbacks
        callbacks.add(self.name, callback)

        def unsubscribe():
            callbacks.discard(self.name, callback)

        return unsubscribe

    def on_change(self, value: Any) -> None:
        self._form._handle_change(self.name, value)

    def on_blur(self) -> None:
        self._form._handle_blur(self.name)

    def focus(self) -> None:
        self._form.focus_field(self.name)

    def focus_next_field(self) -> None:
        self._form._focus_next_field(self.name)

    def __repr__(self):
        return f"FieldBinding(name={self.name!r}, mounted={self._mounted})"


class Form:
    """
    Manages per-field state, validation timing and submission for one form.

    Field names and their declaration order are fixed at construction. The
    configuration itself may be replaced at any time with ``update_config`` and
    is always read at the moment it is needed.
    """
    def __init__(self, config: ConfigInput):
        self._config: Dict[str, FieldConfig] = normalize_config(config)
        self._names: Tuple[str, ...] = tuple(self._config)

        self.status, self._set_status = create_signal(FormStatus.UNTOUCHED)
        self._helpers = ValidationHelpers(self)

        self._states: Dict[str, FieldState] = {}
        self._callbacks = CallbackRegistry(self._names)
        self._mounted: Dict[str, bool] = {}
        self._refs: Dict[str, FieldRef] = {}
        self._timeouts: Dict[str, Optional[ScheduledTask]] = {}

        for name in self._names:
            self._states[name] = FieldState(value=self._get_config(name).get_initial_value())
            self._mounted[name] = False
            self._refs[name] = FieldRef(name)
            self._timeouts[name] = None

    # -- Configuration ---
    @property
    def field_names(self) -> Tuple[str, ...]:
        return self._names

    @property
    def form_status(self) -> FormStatus:
        return self.status()

    def update_config(self, config: ConfigInput) -> None:
        """
        Replaces the whole configuration. Later operations read the new settings.

        The set of field names cannot change.
        """
        new_config = normalize_config(config)

        if set(new_config) != set(self._names):
            added = sorted(set(new_config) - set(self._names))
            removed = sorted(set(self._names) - set(new_config))
            raise ConfigurationError(
                f"Field names are fixed for the lifetime of a form (added: {added}, removed: {removed})."
            )

        self._config = new_config

    def _get_config(self, name: str) -> FieldConfig:
        try:
            return self._config[name]
        except KeyError:
            raise UnknownFieldError(name) from None

    def field(self, name: str) -> FieldBinding:
        """Creates a binding a presentation consumer uses to mount and drive ``name``."""
        return FieldBinding(self, name)

    # -- State ---
    def _set_talkative(self, name: str, strategies: Optional[Sequence[Strategy]] = None) -> None:
        if strategies is None or self._get_config(name).strategy in strategies:
            self._states[name] = self._states[name].evolve(talkative=True)

    def _set_validity(self, name: str, validity: Validity) -> None:
        self._states[name] = self._states[name].evolve(validity=validity)

    def _run_callbacks(self, name: str) -> None:
        self._callbacks.notify(name)

    def _transform_state(self, name: str, state: FieldState, sanitize: bool = False) -> FieldView:
        config = self._get_config(name)
        value = config.sanitize(state.value) if sanitize else state.value
        validity = state.validity

        if not state.talkative or validity.kind is ValidityKind.UNKNOWN:
            # Avoid giving feedback too soon
            return FieldView(value=value, validating=False, valid=not config.has_validator, error=None)

        return FieldView(
            value=value,
            validating=validity.kind is ValidityKind.VALIDATING,
            valid=validity.kind is ValidityKind.VALID,
            error=validity.error if validity.kind is ValidityKind.INVALID else None,
        )

    def get_field_state(self, name: str, sanitize: bool = False) -> FieldView:
        """
        Returns the projected state of a field.

        Args:
            name: The field name
            sanitize: If True, the returned value is passed through the field's sanitizer
        """
        self._get_config(name)
        return self._transform_state(name, self._states[name], sanitize=sanitize)

    # -- Mounting ---
    def _mount(self, name: str) -> bool:
        """Marks ``name`` as mounted. Returns False if another consumer already owns it."""
        if self._mounted[name]:
            logger.warning(
                "Field '%s' is already mounted. Mounting multiple fields with identical names is not supported and will lead to errors",
                name,
            )
            return False

        self._mounted[name] = True
        return True

    def _unmount(self, name: str) -> None:
        self._mounted[name] = False

    def is_mounted(self, name: str) -> bool:
        self._get_config(name)
        return self._mounted[name]

    # -- Debounce ---
    def _clear_debounce(self, name: str) -> bool:
        """Cancels the pending debounce of ``name``. Returns True if the slot was occupied."""
        debounced = AsyncTask.cancel_task(self._timeouts[name])
        self._timeouts[name] = None
        return debounced

    def _on_debounce_fired(self, name: str) -> None:
        if self._mounted[name]:
            self._validate(name)
        else:
            logger.debug("Skipping debounced validation of unmounted field '%s'", name)
            self._clear_debounce(name)

    # -- Validation ---
    def _validate(self, name: str) -> Outcome:
        debounced = self._clear_debounce(name)

        config = self._get_config(name)
        sanitize = config.sanitize
        value_at_start = sanitize(self._states[name].value)

        result = None
        if config.validate is not None:
            result = call_validator(config.validate, value_at_start, self._helpers)

        if not AsyncTask.is_deferred(result):
            self._apply_result(name, result)
            return Immediate(result)

        if not debounced:
            self._set_validity(name, VALIDATING)
            self._run_callbacks(name)

        return Deferred(AsyncTask.ensure(self._settle(name, result, value_at_start, sanitize)))

    async def _settle(self, name: str, pending: Any, value_at_start: Any, sanitize: Callable[[Any], Any]) -> Any:
        try:
            error = await pending
        except Exception as e:
            # The field stays in validating state
            logger.warning(
                "Something went wrong during '%s' validation. Don't forget to handle exceptions in async validators.",
                name,
                exc_info=e,
            )
            return None

        value_at_end = sanitize(self._states[name].value)
        if not self._get_config(name).equality_fn(value_at_start, value_at_end):
            logger.debug("Discarding stale validation result of field '%s'", name)
            return None

        self._apply_result(name, error)
        return error

    def _apply_result(self, name: str, error: Any) -> None:
        if error is None:
            self._set_talkative(name, SUCCESS_GATE)

        self._set_validity(name, Validity.from_result(error))
        self._run_callbacks(name)

    def validate_field(self, name: str) -> Any:
        """
        Reveals and runs validation of a mounted field.

        Returns:
            The error (None when valid) for a synchronous validator, an asyncio.Future
            resolving to it for an asynchronous one, None if the field is not mounted
        """
        self._get_config(name)
        if not self._mounted[name]:
            return None

        self._set_talkative(name)
        return self._validate(name).unwrap()

    # -- Field operations ---
    def set_field_value(self, name: str, value: Any, validate: bool = False) -> None:
        """
        Sets the raw value of a field and revalidates it.

        Args:
            name: The field name
            value: The new raw value
            validate: If True, validation feedback becomes visible whatever the strategy
        """
        self._get_config(name)
        self._states[name] = self._states[name].evolve(value=value)

        if validate:
            self._set_talkative(name)

        self._validate(name)

    def focus_field(self, name: str) -> None:
        self._get_config(name)
        self._refs[name].focus()

    def reset_field(self, name: str) -> None:
        """Restores the initial value and forgets validation state."""
        config = self._get_config(name)
        self._clear_debounce(name)

        self._states[name] = FieldState(value=config.get_initial_value(), talkative=False, validity=UNKNOWN)
        self._run_callbacks(name)

    def listen_fields(self, names: Iterable[str], listener: Callable[[Dict[str, FieldView]], None]) -> Callable[[], None]:
        """
        Calls ``listener({name: FieldView})`` whenever one of ``names`` changes.

        Returns:
            An idempotent unsubscribe function
        """
        names = list(names)
        for name in names:
            self._get_config(name)

        def callback():
            listener({name: self._transform_state(name, self._states[name]) for name in names})

        for name in names:
            self._callbacks.add(name, callback)

        def unsubscribe():
            for name in names:
                self._callbacks.discard(name, callback)

        return unsubscribe

    # -- Presentation events ---
    def _handle_change(self, name: str, value: Any) -> None:
        config = self._get_config(name)
        debounce_interval_ms = config.debounce_interval_ms

        self._states[name] = self._states[name].evolve(value=value)
        self._set_talkative(name, CHANGE_GATE)
        self._clear_debounce(name)

        if self.status() in (FormStatus.UNTOUCHED, FormStatus.SUBMITTED):
            self._set_status(FormStatus.EDITING)

        if debounce_interval_ms == 0:
            self._validate(name)
            return

        self._set_validity(name, VALIDATING)
        self._run_callbacks(name)

        self._timeouts[name] = AsyncTask.run_later(debounce_interval_ms, lambda: self._on_debounce_fired(name))

    def _handle_blur(self, name: str) -> None:
        state = self._states[name]

        # Avoid validating an untouched / already talkative field
        if state.validity.kind is not ValidityKind.UNKNOWN and not state.talkative:
            self._set_talkative(name, BLUR_GATE)
            self._validate(name)

    def _focus_next_field(self, name: str) -> None:
        index = self._names.index(name)
        if index + 1 < len(self._names):
            self.focus_field(self._names[index + 1])

    # -- Form operations ---
    def reset_form(self) -> None:
        for name in self._names:
            self.reset_field(name)
        self._set_status(FormStatus.UNTOUCHED)

    def submit_form(
        self,
        on_success: Callable[[Dict[str, Any]], Any],
        on_failure: Optional[Callable[[Dict[str, Any]], Any]] = None,
        avoid_focus_on_error: bool = False,
    ) -> Optional[asyncio.Future]:
        """
        Validates every mounted field and calls ``on_success(values)`` or ``on_failure(errors)``.

        ``values`` maps each mounted field to its sanitized value, ``errors`` maps each
        mounted field to its error (None for valid fields). Unless ``avoid_focus_on_error``
        is set, the first invalid field in declaration order is focused.

        A call made while a submission is in progress is ignored.

        Returns:
            None if the submission completed synchronously, otherwise a future that
            settles once the form status becomes submitted
        """
        if self.status() is FormStatus.SUBMITTING:
            return None  # Avoid concurrent submissions

        previous_status = self.status()
        self._set_status(FormStatus.SUBMITTING)

        names = [name for name in self._names if self._mounted[name]]
        values: Dict[str, Any] = {}
        outcomes: List[Outcome] = []
        should_focus_on_error = not avoid_focus_on_error

        try:
            for name in names:
                self._set_talkative(name)
                values[name] = self.get_field_state(name, sanitize=True).value
                outcomes.append(self._validate(name))
        except Exception:
            # A validator raised: the submission never started
            self._set_status(previous_status)
            raise

        if all(isinstance(outcome, Immediate) for outcome in outcomes):
            try:
                effect = self._resolve_submission(
                    names, [outcome.error for outcome in outcomes], values,
                    on_success, on_failure, should_focus_on_error,
                )
            except Exception as e:
                report_error(e, "Error in form submission handler")
                self._set_status(FormStatus.SUBMITTED)
                return None

            if AsyncTask.is_deferred(effect):
                return AsyncTask.ensure(self._finish_submission(effect))

            self._set_status(FormStatus.SUBMITTED)
            return None

        # Revealed fields now show as validating, even those whose debounce was pending
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Deferred):
                self._run_callbacks(name)

        return AsyncTask.ensure(
            self._join_submission(names, outcomes, values, on_success, on_failure, should_focus_on_error)
        )

    def _resolve_submission(self, names, errors, values, on_success, on_failure, should_focus_on_error) -> Any:
        if all(error is None for error in errors):
            return on_success(values)

        if should_focus_on_error:
            self._focus_first_error(names, errors)

        if on_failure is None:
            return None
        return on_failure(dict(zip(names, errors)))

    def _focus_first_error(self, names: List[str], errors: List[Any]) -> None:
        for name, error in zip(names, errors):
            if error is not None:
                self.focus_field(name)
                return

    async def _finish_submission(self, effect: Any) -> None:
        try:
            await effect
        except Exception as e:
            report_error(e, "Error in form submission handler")
        finally:
            self._set_status(FormStatus.SUBMITTED)

    async def _join_submission(self, names, outcomes, values, on_success, on_failure, should_focus_on_error) -> None:
        try:
            errors = await AsyncTask.gather([outcome.unwrap() for outcome in outcomes])
            effect = self._resolve_submission(names, errors, values, on_success, on_failure, should_focus_on_error)

            if AsyncTask.is_deferred(effect):
                await effect
        except Exception as e:
            report_error(e, "Error in form submission handler")
        finally:
            self._set_status(FormStatus.SUBMITTED)


def create_form(config: ConfigInput) -> Form:
    """
    Factory function to create a Form.

    Args:
        config: A Schema, or a mapping of field name to FieldConfig (or to a dict
                of FieldConfig keyword arguments). Mapping order is the declaration order.

    Returns:
        A configured Form instance.
    """
    return Form(config)
