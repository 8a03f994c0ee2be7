import unittest

from backoffice.confirmation import (
    NO_CHANGES,
    Confirmation,
    changed_fields,
    describe_changes,
    humanize_field,
    nothing_to_do,
    require_fields,
)
from backoffice.errors import ValidationError


class ConfirmationTests(unittest.TestCase):
    def test_humanize_field(self):
        self.assertEqual(humanize_field("work_email"), "Work Email")
        self.assertEqual(humanize_field("workEmail"), "Work Email")
        self.assertEqual(humanize_field("city"), "City")

    def test_only_differing_fields_are_reported(self):
        original = {"city": "Oslo", "state": "OS", "country": "NO"}
        updated = {"city": "Bergen", "state": "OS", "country": "NO"}
        changes = changed_fields(original, updated, ("city", "state", "country"))
        self.assertEqual(changes, ["city"])
        self.assertEqual(describe_changes(changes), "City changed")

    def test_no_changes(self):
        self.assertEqual(changed_fields({"a": 1}, {"a": 1}, ("a",)), [])
        self.assertEqual(describe_changes([]), NO_CHANGES)

    def test_require_fields_lists_every_blank(self):
        with self.assertRaises(ValidationError) as ctx:
            require_fields({"name": " ", "email": "a@b.c"}, ("name", "email", "reason"))
        self.assertEqual(ctx.exception.missing, ["name", "reason"])

    def test_nothing_runs_until_confirmed(self):
        calls = []
        confirmation = Confirmation("Sure?", action=lambda: calls.append(1) or "done")
        self.assertTrue(confirmation.requires_action)
        self.assertEqual(calls, [])
        self.assertEqual(confirmation.confirm(), "done")
        self.assertEqual(calls, [1])

    def test_nothing_to_do(self):
        confirmation = nothing_to_do("No changes were made.")
        self.assertFalse(confirmation.requires_action)
        self.assertIsNone(confirmation.confirm())
        self.assertEqual(confirmation.changes, [])


if __name__ == "__main__":
    unittest.main()
