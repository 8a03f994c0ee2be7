import unittest
from datetime import date

from backoffice.departments import NOT_ASSIGNED, DepartmentRegistry, created_date_label
from backoffice.errors import NotFoundError, StoreError, ValidationError
from backoffice.gateway import InMemoryStore
from backoffice.records import DepartmentStatus


def seed():
    return {
        "departments": {
            "d1": {
                "name": "Development",
                "description": "Builds the product",
                "headKey": "m1",
                "status": "active",
                "createdDate": "1/2/2024",
            },
            "d2": {"name": "Sales", "description": "Sells it", "status": "active"},
        },
        "users": {
            "e1": {"firstName": "Ann", "lastName": "Lee", "roles": ["employee", "active", "development"]},
            "e2": {"firstName": "Bob", "lastName": "Ray", "roles": ["employee", "active", "development"]},
            "e3": {"firstName": "Cy", "lastName": "Fox", "roles": ["employee", "active", "development"]},
            "m1": {
                "firstName": "Sarah",
                "lastName": "Wilson",
                "roles": ["manager", "active"],
            },
            "e4": {"firstName": "Dee", "lastName": "Park", "roles": ["employee", "active"]},
            "c1": {"firstName": "Cara", "lastName": "Client", "roles": ["client"]},
        },
    }


class DepartmentRegistryTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore(seed())
        self.registry = DepartmentRegistry(self.store, today=lambda: date(2024, 3, 5))
        self.registry.load()

    def test_counts_are_derived_from_members(self):
        self.assertEqual(self.registry.get("d1").employee_count, 3)
        self.assertEqual(self.registry.get("d2").employee_count, 0)
        self.assertNotIn("c1", self.registry.employees)

    def test_head_name_and_options(self):
        self.assertEqual(self.registry.head_name(self.registry.get("d1")), "Sarah Wilson")
        self.assertEqual(self.registry.head_name(self.registry.get("d2")), NOT_ASSIGNED)
        self.assertEqual([e.key for e in self.registry.head_options()], ["m1"])

    def test_search_matches_head_name(self):
        self.assertEqual([d.key for d in self.registry.search("sarah")], ["d1"])
        self.assertEqual([d.key for d in self.registry.search("sells")], ["d2"])
        self.assertEqual(len(self.registry.search("")), 2)

    def test_create(self):
        department = self.registry.create({"name": " Support ", "description": "Helps"})

        stored = self.store.read(f"departments/{department.key}")
        self.assertEqual(stored["name"], "Support")
        self.assertEqual(stored["status"], "active")
        self.assertEqual(stored["createdDate"], "5/3/2024")
        self.assertNotIn("employeeCount", stored)
        self.assertEqual(department.employee_count, 0)

    def test_create_requires_name(self):
        with self.assertRaises(ValidationError):
            self.registry.create({"description": "No name"})
        self.assertEqual(len(self.store.read("departments")), 2)

    def test_created_date_label_is_unpadded(self):
        self.assertEqual(created_date_label(date(2024, 11, 9)), "9/11/2024")

    def test_update_membership_in_one_batch(self):
        confirmation = self.registry.request_update(
            "d1", {"status": "inactive"}, member_keys=["e1", "e2", "e3", "e4"]
        )
        self.assertEqual(confirmation.changes, ["status", "members"])
        self.assertEqual(
            confirmation.message, "Are you sure you want to update department 'Development'?"
        )

        confirmation.confirm()
        self.assertEqual(self.store.read("departments/d1/status"), "inactive")
        self.assertEqual(self.store.read("users/e4/departmentKey"), "d1")
        self.assertEqual(self.store.read("users/e4/department"), "Development")
        self.assertIn("development", self.store.read("users/e4/roles"))
        department = self.registry.get("d1")
        self.assertEqual(department.status, DepartmentStatus.INACTIVE)
        self.assertEqual(department.employee_count, 4)

    def test_removing_a_member(self):
        self.registry.request_update("d1", {}, member_keys=["e1", "e2"]).confirm()
        self.assertEqual(self.store.read("users/e3/roles"), ["employee", "active"])
        self.assertIsNone(self.store.read("users/e3/departmentKey"))
        self.assertEqual(self.registry.get("d1").employee_count, 2)

    def test_update_without_changes(self):
        confirmation = self.registry.request_update(
            "d1", {"name": "Development"}, member_keys=["e1", "e2", "e3"]
        )
        self.assertFalse(confirmation.requires_action)
        self.assertEqual(
            confirmation.message, "No changes were made to the department details."
        )

    def test_update_unknown_member(self):
        with self.assertRaises(NotFoundError):
            self.registry.request_update("d1", {}, member_keys=["ghost"])

    def test_delete_detaches_every_member(self):
        confirmation = self.registry.request_delete("d1")
        self.assertEqual(
            confirmation.message,
            "Are you sure you want to delete the department 'Development'? "
            "This action cannot be undone.",
        )

        detached = confirmation.confirm()
        self.assertEqual(sorted(detached), ["e1", "e2", "e3"])
        self.assertIsNone(self.store.read("departments/d1"))
        for key in ("e1", "e2", "e3"):
            self.assertEqual(self.store.read(f"users/{key}/roles"), ["employee", "active"])
            self.assertIsNone(self.store.read(f"users/{key}/departmentKey"))
        self.assertEqual([d.key for d in self.registry.list()], ["d2"])
        self.assertEqual(self.registry.members("d1"), [])

    def test_failed_delete_changes_nothing(self):
        before = self.store.read("/")
        confirmation = self.registry.request_delete("d1")
        self.store.fail_paths.add("users/e2")

        with self.assertRaises(StoreError):
            confirmation.confirm()
        self.assertEqual(self.store.read("/"), before)
        self.assertEqual(self.registry.get("d1").employee_count, 3)

    def test_unknown_department(self):
        with self.assertRaises(NotFoundError):
            self.registry.request_delete("nope")


if __name__ == "__main__":
    unittest.main()
