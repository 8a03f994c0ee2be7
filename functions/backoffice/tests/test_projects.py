import unittest

from backoffice.cache import VOLATILE, CacheService, InMemoryCacheStore
from backoffice.constants import PROJECTS_CACHE_KEY
from backoffice.errors import NotFoundError, StoreError, ValidationError
from backoffice.gateway import InMemoryStore
from backoffice.projects import ProjectPortfolio
from backoffice.storage import InMemoryStorageClient, UploadedFile

STAMP = 1_700_000_000_000


def seed():
    return {
        "projects": {
            "p1": {"title": "Alpha", "description": "A", "image": "a.png", "order": 2},
            "p2": {"title": "Beta", "description": "B", "image": "b.png", "order": 0},
            "p3": {"title": "Gamma", "description": "C", "image": "c.png"},
            "p4": {"title": "Delta", "description": "D", "image": "d.png", "order": 1},
        }
    }


class ProjectPortfolioTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore(seed())
        self.storage = InMemoryStorageClient()
        self.cache = CacheService(InMemoryCacheStore())
        self.portfolio = ProjectPortfolio(
            self.store, self.storage, self.cache, clock_ms=lambda: STAMP
        )
        self.portfolio.load()

    def titles(self):
        return [p.title for p in self.portfolio.records()]

    def test_sorted_by_order_with_unordered_last(self):
        self.assertEqual(self.titles(), ["Beta", "Delta", "Alpha", "Gamma"])

    def test_served_from_session_cache(self):
        self.store.fail_paths.add("*")
        self.portfolio.load()
        self.assertEqual(len(self.portfolio.projects), 4)
        self.assertIsNotNone(self.cache.get(PROJECTS_CACHE_KEY, tier=VOLATILE))
        self.assertIsNone(self.cache.get(PROJECTS_CACHE_KEY))

    def test_reorder_writes_every_position(self):
        records = self.portfolio.reorder(0, 2)

        self.assertEqual([p.title for p in records], ["Delta", "Alpha", "Beta", "Gamma"])
        orders = {key: value["order"] for key, value in self.store.read("projects").items()}
        self.assertEqual(orders, {"p4": 0, "p1": 1, "p2": 2, "p3": 3})
        self.assertEqual(sorted(orders.values()), [0, 1, 2, 3])
        self.assertEqual(self.store.read("metadata/projects_last_updated"), STAMP)

        cached = self.cache.get(PROJECTS_CACHE_KEY, tier=VOLATILE).data
        self.assertEqual([r["title"] for r in cached], ["Delta", "Alpha", "Beta", "Gamma"])

    def test_reorder_rejects_bad_positions(self):
        with self.assertRaises(ValidationError):
            self.portfolio.reorder(0, 4)
        self.assertIsNone(self.store.read("metadata/projects_last_updated"))

    def test_reorder_failure_writes_no_orders(self):
        self.store.fail_paths.add("projects/p3")
        with self.assertRaises(StoreError):
            self.portfolio.reorder(3, 0)
        self.assertEqual(self.store.read("projects/p2/order"), 0)
        self.assertIsNone(self.store.read("metadata/projects_last_updated"))

    def test_save_requires_an_image(self):
        with self.assertRaises(ValidationError) as ctx:
            self.portfolio.save({"title": "New", "description": "Thing"})
        self.assertEqual(ctx.exception.missing, ["image"])
        self.assertEqual(str(ctx.exception), "Please provide an Image URL or Upload an Image.")

    def test_create_with_upload(self):
        project = self.portfolio.save(
            {"title": "Epsilon", "description": "E", "category": "Mobile App"},
            image=UploadedFile("shot 1.png", b"png-bytes", "image/png"),
        )

        [path] = self.storage.stored_objects
        self.assertEqual(path, f"project_images/{STAMP}_shot_1.png")
        stored = self.store.read(f"projects/{project.key}")
        self.assertEqual(stored["image"], project.image)
        self.assertTrue(project.image.startswith(self.storage.base_url))
        self.assertEqual(stored["order"], 4)
        self.assertEqual(self.titles(), ["Beta", "Delta", "Alpha", "Epsilon", "Gamma"])
        self.assertEqual(self.store.read("metadata/projects_last_updated"), STAMP)

    def test_update_only_writes_given_fields(self):
        self.portfolio.save({"title": "Alpha 2", "description": "A", "image": "a.png"}, key="p1")
        stored = self.store.read("projects/p1")
        self.assertEqual(stored["title"], "Alpha 2")
        self.assertEqual(stored["order"], 2)
        self.assertIn("Alpha 2", self.titles())

    def test_update_unknown_project(self):
        with self.assertRaises(NotFoundError):
            self.portfolio.save({"title": "X", "description": "Y", "image": "z"}, key="nope")

    def test_delete(self):
        confirmation = self.portfolio.request_delete("p3")
        self.assertEqual(
            confirmation.message, "Are you sure you want to delete the project 'Gamma'?"
        )
        confirmation.confirm()
        self.assertIsNone(self.store.read("projects/p3"))
        self.assertNotIn("Gamma", self.titles())


class MarkerFailureTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore(seed())
        self.store.fail_paths.add("metadata")
        self.portfolio = ProjectPortfolio(
            self.store, InMemoryStorageClient(), CacheService(InMemoryCacheStore()),
            clock_ms=lambda: STAMP,
        )
        self.portfolio.load()

    def test_save_is_kept_and_reloaded(self):
        with self.assertLogs("backoffice.projects", level="ERROR"):
            project = self.portfolio.save({"title": "Epsilon", "description": "E", "image": "e.png"})

        self.assertEqual(len(self.store.read("projects")), 5)
        self.assertEqual(self.store.read(f"projects/{project.key}/title"), "Epsilon")
        self.assertIn(project.key, [p.key for p in self.portfolio.records()])
        self.assertNotIn("metadata", self.store.root)

    def test_delete_is_kept_and_reloaded(self):
        with self.assertLogs("backoffice.projects", level="ERROR"):
            self.portfolio.request_delete("p3").confirm()

        self.assertIsNone(self.store.read("projects/p3"))
        self.assertEqual(
            [p.title for p in self.portfolio.records()], ["Beta", "Delta", "Alpha"]
        )

    def test_reorder_is_kept(self):
        with self.assertLogs("backoffice.projects", level="ERROR"):
            records = self.portfolio.reorder(0, 2)

        self.assertEqual([p.title for p in records], ["Delta", "Alpha", "Beta", "Gamma"])
        self.assertEqual(self.store.read("projects/p2/order"), 2)

    def test_touch_marker_reports_failure(self):
        with self.assertLogs("backoffice.projects", level="ERROR"):
            self.assertIsNone(self.portfolio.touch_marker())


if __name__ == "__main__":
    unittest.main()
