import asyncio
import unittest

from uxform import FieldConfig, FormStatus, create_form, has_defined_keys, set_global_error_handler


def required(message):
    def validate(value):
        if not value:
            return message
    return validate


class FakeInput:
    def __init__(self):
        self.focus_count = 0

    def focus(self):
        self.focus_count += 1


def build_form(config):
    form = create_form(config)
    fields = {}
    for name in form.field_names:
        fields[name] = form.field(name).mount()
        fields[name].ref.current = FakeInput()
    return form, fields


class TestSyncSubmission(unittest.TestCase):
    def test_success_receives_sanitized_values(self):
        form, fields = build_form({
            "first_name": FieldConfig(initial_value="", sanitize=str.strip, validate=required("Required")),
            "newsletter": FieldConfig(initial_value=False),
        })
        fields["first_name"].on_change("  Ada ")
        received = []

        result = form.submit_form(received.append, lambda errors: self.fail("unexpected failure"))

        self.assertIsNone(result)
        self.assertEqual(received, [{"first_name": "Ada", "newsletter": False}])
        self.assertTrue(has_defined_keys(received[0], ["first_name", "newsletter"]))
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)

    def test_first_error_is_focused(self):
        form, fields = build_form({
            "a": FieldConfig(initial_value="ok", validate=required("a is required")),
            "b": FieldConfig(initial_value="", validate=required("b is required")),
            "c": FieldConfig(initial_value="", validate=required("c is required")),
        })
        failures = []

        form.submit_form(lambda values: self.fail("unexpected success"), failures.append)

        self.assertEqual(failures, [{"a": None, "b": "b is required", "c": "c is required"}])
        self.assertEqual(fields["a"].ref.current.focus_count, 0)
        self.assertEqual(fields["b"].ref.current.focus_count, 1)
        self.assertEqual(fields["c"].ref.current.focus_count, 0)
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)

    def test_avoid_focus_on_error(self):
        form, fields = build_form({"a": FieldConfig(initial_value="", validate=required("Required"))})

        form.submit_form(lambda values: None, avoid_focus_on_error=True)

        self.assertEqual(fields["a"].ref.current.focus_count, 0)

    def test_submission_reveals_errors_whatever_the_strategy(self):
        form, fields = build_form({
            "a": FieldConfig(initial_value="", strategy="onSubmit", validate=required("Required")),
            "b": FieldConfig(initial_value="", strategy="onBlur", validate=required("Required")),
        })

        form.submit_form(lambda values: None)

        self.assertEqual(fields["a"].state.error, "Required")
        self.assertEqual(fields["b"].state.error, "Required")

    def test_untouched_fields_are_revalidated(self):
        calls = []

        def validate(value):
            calls.append(value)

        form, _ = build_form({"a": FieldConfig(initial_value="initial", validate=validate)})

        form.submit_form(lambda values: None)

        self.assertEqual(calls, ["initial"])

    def test_unmounted_fields_are_excluded(self):
        calls = []

        def validate(value):
            calls.append(value)
            return "never valid"

        form, fields = build_form({
            "a": FieldConfig(initial_value="x"),
            "b": FieldConfig(initial_value="y", validate=validate),
        })
        fields["b"].unmount()
        received = []

        form.submit_form(received.append)

        self.assertEqual(received, [{"a": "x"}])
        self.assertEqual(calls, [])

    def test_submit_while_submitting_is_ignored(self):
        form, _ = build_form({"a": FieldConfig(initial_value="x")})
        successes = []
        nested_results = []

        def on_success(values):
            successes.append(values)
            nested_results.append(form.submit_form(successes.append))

        form.submit_form(on_success)

        self.assertEqual(len(successes), 1)
        self.assertEqual(nested_results, [None])
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)

    def test_failing_handler_is_reported(self):
        reported = []
        set_global_error_handler(lambda error, description=None: reported.append(error))
        try:
            form, _ = build_form({"a": FieldConfig(initial_value="x")})

            def on_success(values):
                raise RuntimeError("network down")

            form.submit_form(on_success)
        finally:
            set_global_error_handler(None)

        self.assertEqual([str(error) for error in reported], ["network down"])
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)

    def test_raising_validator_restores_status(self):
        def broken(value):
            raise ValueError("bad validator")

        form, fields = build_form({"a": FieldConfig(initial_value="x", validate=broken)})

        with self.assertRaises(ValueError):
            form.submit_form(lambda values: None)
        self.assertEqual(form.form_status, FormStatus.UNTOUCHED)


class TestAsyncSubmission(unittest.IsolatedAsyncioTestCase):
    async def test_join_keeps_field_order(self):
        loop = asyncio.get_running_loop()
        pending = {"a": loop.create_future(), "c": loop.create_future()}

        form, fields = build_form({
            "a": FieldConfig(initial_value="1", validate=lambda value: pending["a"]),
            "b": FieldConfig(initial_value="", validate=required("b is required")),
            "c": FieldConfig(initial_value="3", validate=lambda value: pending["c"]),
        })
        failures = []
        statuses = []
        form.status.subscribe(lambda old, new: statuses.append(new))

        result = form.submit_form(lambda values: self.fail("unexpected success"), failures.append)
        self.assertEqual(form.form_status, FormStatus.SUBMITTING)
        self.assertTrue(fields["a"].state.validating)

        pending["c"].set_result("c is taken")
        pending["a"].set_result("a is taken")
        await result

        self.assertEqual(failures, [{"a": "a is taken", "b": "b is required", "c": "c is taken"}])
        self.assertEqual(fields["a"].ref.current.focus_count, 1)
        self.assertEqual(fields["b"].ref.current.focus_count, 0)
        self.assertEqual(statuses, [FormStatus.SUBMITTING, FormStatus.SUBMITTED])

    async def test_async_success(self):
        async def available(value):
            await asyncio.sleep(0)

        form, _ = build_form({"user": FieldConfig(initial_value="ada", validate=available)})
        received = []

        await form.submit_form(received.append)

        self.assertEqual(received, [{"user": "ada"}])
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)

    async def test_submit_while_validating_is_ignored(self):
        loop = asyncio.get_running_loop()
        pending = loop.create_future()
        calls = []

        def validate(value):
            calls.append(value)
            return pending

        form, _ = build_form({"a": FieldConfig(initial_value="x", validate=validate)})
        successes = []

        first = form.submit_form(successes.append)
        second = form.submit_form(successes.append)

        self.assertIsNone(second)
        self.assertEqual(calls, ["x"])

        pending.set_result(None)
        await first
        self.assertEqual(successes, [{"a": "x"}])

    async def test_deferred_handler_keeps_submitting(self):
        form, _ = build_form({"a": FieldConfig(initial_value="x")})
        release = asyncio.Event()

        async def on_success(values):
            await release.wait()

        result = form.submit_form(on_success)
        await asyncio.sleep(0)
        self.assertEqual(form.form_status, FormStatus.SUBMITTING)

        release.set()
        await result
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)

    async def test_deferred_failure_handler_keeps_submitting(self):
        form, _ = build_form({"a": FieldConfig(initial_value="", validate=required("Required"))})
        release = asyncio.Event()
        failures = []

        async def on_failure(errors):
            await release.wait()
            failures.append(errors)

        result = form.submit_form(lambda values: self.fail("unexpected success"), on_failure)
        await asyncio.sleep(0)
        self.assertEqual(form.form_status, FormStatus.SUBMITTING)
        self.assertEqual(failures, [])

        release.set()
        await result
        self.assertEqual(failures, [{"a": "Required"}])
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)

    async def test_failing_async_validator_counts_as_valid(self):
        async def broken(value):
            raise ValueError("backend unavailable")

        form, fields = build_form({"a": FieldConfig(initial_value="x", validate=broken)})
        received = []

        with self.assertLogs("uxform.form.form", level="WARNING"):
            await form.submit_form(received.append, lambda errors: self.fail("unexpected failure"))

        self.assertEqual(received, [{"a": "x"}])
        self.assertEqual(form.form_status, FormStatus.SUBMITTED)
        self.assertTrue(fields["a"].state.validating)

    async def test_pending_debounce_is_revealed_as_validating(self):
        loop = asyncio.get_running_loop()
        pending = loop.create_future()

        form, fields = build_form({
            "code": FieldConfig(
                initial_value="",
                strategy="onBlur",
                debounce_interval_ms=1000,
                validate=lambda value: pending,
            ),
        })
        code = fields["code"]
        code.on_change("a")
        self.assertFalse(code.state.validating)

        notified = []
        code.subscribe(lambda: notified.append(code.state.validating))

        result = form.submit_form(lambda values: None)

        self.assertTrue(code.state.validating)
        self.assertEqual(notified, [True])

        pending.set_result(None)
        await result
        self.assertEqual(notified, [True, False])
        self.assertTrue(code.state.valid)


if __name__ == "__main__":
    unittest.main()
