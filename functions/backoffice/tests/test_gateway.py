import unittest
from unittest.mock import MagicMock, patch

from firebase_admin import exceptions as firebase_exceptions

from backoffice.constants import PREFIX_RANGE_END
from backoffice.errors import StoreError
from backoffice.gateway import (
    FirebaseRealtimeStore,
    InMemoryStore,
    RangeQuery,
    apply_range,
    generate_push_key,
    join_path,
    split_path,
)


class PathTests(unittest.TestCase):
    def test_split_and_join(self):
        self.assertEqual(split_path("/users/u1/"), ["users", "u1"])
        self.assertEqual(split_path("/"), [])
        self.assertEqual(join_path("users", "u1", "roles"), "users/u1/roles")
        self.assertEqual(join_path("/users/", "", "u1"), "users/u1")


class ApplyRangeTests(unittest.TestCase):
    def setUp(self):
        self.children = {
            "c": {"firstName": "Carol"},
            "a": {"firstName": "Alice"},
            "b": {"firstName": "Bob"},
            "d": {},
        }

    def test_key_order_with_bounds_and_limit(self):
        result = apply_range(self.children, RangeQuery(start_at="b", limit_to_first=2))
        self.assertEqual(list(result), ["b", "c"])

    def test_limit_to_last(self):
        result = apply_range(self.children, RangeQuery(limit_to_last=2))
        self.assertEqual(list(result), ["c", "d"])

    def test_child_order_puts_missing_values_first(self):
        result = apply_range(self.children, RangeQuery(order_by="firstName"))
        self.assertEqual(list(result), ["d", "a", "b", "c"])

    def test_prefix_range(self):
        result = apply_range(
            self.children,
            RangeQuery(order_by="firstName", start_at="B", end_at="B" + PREFIX_RANGE_END),
        )
        self.assertEqual(list(result), ["b"])

    def test_equal_to(self):
        result = apply_range(
            self.children, RangeQuery(order_by="firstName", equal_to="Alice")
        )
        self.assertEqual(list(result), ["a"])

    def test_integer_keys_sort_numerically(self):
        result = apply_range({"10": 1, "9": 2, "x": 3}, RangeQuery())
        self.assertEqual(list(result), ["9", "10", "x"])

    def test_exclusive_limits(self):
        with self.assertRaises(ValueError):
            RangeQuery(limit_to_first=1, limit_to_last=1)


class InMemoryStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore({"users": {"u1": {"firstName": "Ann", "city": "Oslo"}}})

    def test_read_returns_copy(self):
        user = self.store.read("users/u1")
        user["firstName"] = "Changed"
        self.assertEqual(self.store.read("users/u1/firstName"), "Ann")

    def test_patch_merges_and_none_removes(self):
        self.store.patch("users/u1", {"city": None, "state": "OS"})
        self.assertEqual(self.store.read("users/u1"), {"firstName": "Ann", "state": "OS"})

    def test_delete_prunes_empty_parents(self):
        self.store.delete("users/u1")
        self.assertIsNone(self.store.read("users"))
        self.assertEqual(self.store.root, {})

    def test_patch_many_is_all_or_nothing(self):
        self.store.fail_paths.add("departments")
        with self.assertRaises(StoreError):
            self.store.patch_many(
                {"users/u1/city": "Bergen", "departments/d1": {"name": "Sales"}}
            )
        self.assertEqual(self.store.read("users/u1/city"), "Oslo")

    def test_failing_read_raises_store_error(self):
        self.store.fail_paths.add("*")
        with self.assertRaises(StoreError) as ctx:
            self.store.read("users")
        self.assertEqual(ctx.exception.path, "users")

    def test_read_range_on_missing_path(self):
        self.assertEqual(self.store.read_range("assets", RangeQuery()), {})

    def test_push_keys_are_unique_and_sortable(self):
        first = generate_push_key(1_700_000_000_000)
        second = generate_push_key(1_700_000_000_001)
        self.assertEqual(len(first), 20)
        self.assertLess(first, second)
        self.assertNotEqual(self.store.push_key("projects"), self.store.push_key("projects"))


class FirebaseRealtimeStoreTests(unittest.TestCase):
    @patch("backoffice.gateway.firebase_db.reference")
    def test_read_range_builds_query(self, mock_reference):
        ref = MagicMock()
        mock_reference.return_value = ref
        ordered = ref.order_by_child.return_value
        ordered.start_at.return_value.end_at.return_value.limit_to_first.return_value.get.return_value = {
            "u1": {"firstName": "Jo"}
        }

        store = FirebaseRealtimeStore()
        result = store.read_range(
            "users",
            RangeQuery(order_by="firstName", start_at="Jo", end_at="Jo" + PREFIX_RANGE_END, limit_to_first=10),
        )

        self.assertEqual(result, {"u1": {"firstName": "Jo"}})
        mock_reference.assert_called_once_with("/users", app=None, url=None)
        ref.order_by_child.assert_called_once_with("firstName")

    @patch("backoffice.gateway.firebase_db.reference")
    def test_sdk_errors_become_store_errors(self, mock_reference):
        mock_reference.return_value.get.side_effect = firebase_exceptions.PermissionDeniedError(
            "denied"
        )
        with self.assertRaises(StoreError) as ctx:
            FirebaseRealtimeStore().read("users/u1")
        self.assertEqual(ctx.exception.path, "users/u1")

    @patch("backoffice.gateway.firebase_db.reference")
    def test_patch_many_updates_root(self, mock_reference):
        FirebaseRealtimeStore().patch_many({"a/b": 1})
        mock_reference.assert_called_once_with("/", app=None, url=None)
        mock_reference.return_value.update.assert_called_once_with({"a/b": 1})


if __name__ == "__main__":
    unittest.main()
