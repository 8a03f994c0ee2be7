import unittest
from unittest.mock import MagicMock

from backoffice.constants import PREFIX_RANGE_END
from backoffice.errors import StoreError
from backoffice.gateway import InMemoryStore, RangeQuery
from backoffice.pagination import (
    KEY_FIELD,
    KeysetPaginator,
    PrefixSearch,
    is_client_account,
)


def make_users(count, clients=()):
    users = {}
    for i in range(1, count + 1):
        key = f"u{i:02d}"
        users[key] = {
            "firstName": f"Name{i:02d}",
            "lastName": "Smith",
            "workEmail": f"{key}@example.com",
            "roles": ["client"] if i in clients else ["employee", "active"],
        }
    return users


def keys_of(records):
    return [r[KEY_FIELD] for r in records]


class ClientAccountTests(unittest.TestCase):
    def test_detects_client_token_in_any_case(self):
        self.assertTrue(is_client_account({"roles": ["Client"]}))
        self.assertTrue(is_client_account({"role": "client"}))
        self.assertTrue(is_client_account({"roles": {"0": "employee", "1": "client"}}))
        self.assertFalse(is_client_account({"roles": ["employee"]}))
        self.assertFalse(is_client_account({}))


class KeysetPaginatorTests(unittest.TestCase):
    def make(self, users):
        self.store = InMemoryStore({"users": users})
        return KeysetPaginator(
            self.store, "users", page_size=5, fetch_buffer=15, exclude=is_client_account
        )

    def test_clients_are_filtered_before_slicing(self):
        paginator = self.make(make_users(20, clients=(1, 2, 3)))
        page = paginator.load_page(1)

        self.assertEqual(keys_of(page.records), ["u04", "u05", "u06", "u07", "u08"])
        self.assertTrue(page.has_more)
        self.assertEqual(paginator.cursors[1], "u15")

    def test_short_collection_fills_what_is_available(self):
        paginator = self.make(make_users(4, clients=(2,)))
        page = paginator.load_page(1)

        self.assertEqual(keys_of(page.records), ["u01", "u03", "u04"])
        self.assertFalse(page.has_more)
        self.assertIsNone(paginator.next_page())

    def test_next_page_starts_after_cursor(self):
        paginator = self.make(make_users(20))
        paginator.load_page(1)
        page = paginator.next_page()

        # The cursor is the last key of the fetched window, echoed back and dropped.
        self.assertEqual(page.number, 2)
        self.assertEqual(keys_of(page.records), ["u16", "u17", "u18", "u19", "u20"])
        self.assertFalse(page.has_more)
        self.assertNotIn(paginator.cursors[1], keys_of(page.records))

    def test_query_shape(self):
        store = MagicMock()
        store.read_range.return_value = {f"u{i:02d}": {} for i in range(1, 16)}
        paginator = KeysetPaginator(store, "users", page_size=5, fetch_buffer=15)

        paginator.load_page(1)
        paginator.load_page(2)

        first, second = [c.args[1] for c in store.read_range.call_args_list]
        self.assertEqual(first, RangeQuery(limit_to_first=15))
        self.assertEqual(second, RangeQuery(start_at="u15", limit_to_first=16))

    def test_previous_page_is_served_from_cache(self):
        paginator = self.make(make_users(20))
        paginator.load_page(1)
        paginator.next_page()
        self.store.fail_paths.add("*")

        page = paginator.previous_page()
        self.assertEqual(page.number, 1)
        self.assertEqual(keys_of(page.records), ["u01", "u02", "u03", "u04", "u05"])
        self.assertTrue(page.has_more)
        self.assertIsNone(paginator.previous_page())

    def test_missing_cursor_falls_back_to_first_page(self):
        paginator = self.make(make_users(20))
        with self.assertLogs("backoffice.pagination", level="WARNING"):
            page = paginator.load_page(3)
        self.assertEqual(page.number, 1)
        self.assertEqual(paginator.current_page, 1)

    def test_empty_collection(self):
        paginator = self.make({})
        page = paginator.load_page(1)
        self.assertEqual(page.records, [])
        self.assertFalse(page.has_more)

    def test_store_error_leaves_state_unchanged(self):
        paginator = self.make(make_users(20))
        paginator.load_page(1)
        self.store.fail_paths.add("users")

        with self.assertRaises(StoreError):
            paginator.next_page()
        self.assertEqual(paginator.current_page, 1)
        self.assertEqual(list(paginator.page_cache), [1])
        self.assertEqual(list(paginator.cursors), [1])

    def test_replace_record_patches_cached_pages(self):
        paginator = self.make(make_users(6))
        paginator.load_page(1)

        paginator.replace_record("u02", {"firstName": "Renamed"})
        paginator.replace_record("u03", None)

        records = paginator.current_records()
        self.assertEqual(keys_of(records), ["u01", "u02", "u04", "u05"])
        self.assertEqual(records[1]["firstName"], "Renamed")

    def test_invalid_page_numbers(self):
        paginator = self.make(make_users(3))
        self.assertIsNone(paginator.load_page(0))
        with self.assertRaises(ValueError):
            KeysetPaginator(self.store, "users", page_size=5, fetch_buffer=4)


class PrefixSearchTests(unittest.TestCase):
    def test_email_term_is_a_single_exact_query(self):
        store = MagicMock()
        store.read_range.return_value = {}
        PrefixSearch(store, "users").run("jo@example.com")

        store.read_range.assert_called_once_with(
            "users",
            RangeQuery(order_by="workEmail", equal_to="jo@example.com", limit_to_first=10),
        )

    def test_name_term_queries_each_name_field_with_capitalised_prefix(self):
        queries = PrefixSearch(MagicMock(), "users").queries("jo")
        self.assertEqual(
            queries,
            [
                RangeQuery(
                    order_by="firstName",
                    start_at="Jo",
                    end_at="Jo" + PREFIX_RANGE_END,
                    limit_to_first=10,
                ),
                RangeQuery(
                    order_by="lastName",
                    start_at="Jo",
                    end_at="Jo" + PREFIX_RANGE_END,
                    limit_to_first=10,
                ),
            ],
        )

    def test_results_are_merged_and_clients_excluded(self):
        store = InMemoryStore(
            {
                "users": {
                    "a": {"firstName": "John", "lastName": "Smith", "roles": ["employee"]},
                    "b": {"firstName": "Jo", "lastName": "Jones", "roles": ["manager"]},
                    "c": {"firstName": "Joan", "lastName": "Client", "roles": ["client"]},
                    "d": {"firstName": "Mary", "lastName": "Major", "roles": ["employee"]},
                }
            }
        )
        search = PrefixSearch(store, "users", exclude=is_client_account)

        results = search.run("jo")
        self.assertEqual(sorted(keys_of(results)), ["a", "b"])

    def test_blank_term_clears(self):
        store = MagicMock()
        self.assertIsNone(PrefixSearch(store, "users").run("   "))
        store.read_range.assert_not_called()


if __name__ == "__main__":
    unittest.main()
