# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
# Standard library imports
import os
import unittest
from unittest.mock import patch

# Third-party library imports
from functions_framework import create_app

# Local application imports
# This patch must be applied before importing 'main'
with patch("firebase_admin.initialize_app"):
    from main import rebuild_list_indexes  # noqa: F401
from backoffice.gateway import InMemoryStore

MAIN_SOURCE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")


def _source_data():
    return {
        "clients": {
            "c1": {
                "firstName": "Cara",
                "serviceRegistrations": {
                    "r1": {"service": "Job Supporting"},
                    "r2": {"registeredDate": "2024-01-10T08:00:00Z"},
                },
            }
        },
        "users": {
            "u1": {"firstName": "Ann", "roles": ["admin"]},
            "u2": {"firstName": "Carl", "roles": ["client"]},
        },
    }


class TestMainRebuildListIndexes(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        self.client = create_app("rebuild_list_indexes", MAIN_SOURCE).test_client()
        self.store = InMemoryStore(_source_data())

    def test_rebuild_list_indexes(self):
        with patch("main.FirebaseRealtimeStore", return_value=self.store):
            response = self.client.post("/", json={"data": {"today": "2024-03-05"}})

        self.assertEqual(
            response.status_code,
            200,
            f"Request failed with status {response.status_code}. Body: {response.get_data(as_text=True)}",
        )
        # Note: @on_call wraps successful responses in a `result` key.
        result = response.get_json()["result"]
        self.assertEqual(result["registrations"], 2)
        self.assertEqual(result["employees"], 1)
        self.assertFalse(result["dryRun"])
        self.assertEqual(
            result["message"],
            "Created index for 2 registrations. Created index for 1 employees.",
        )

        self.assertEqual(
            self.store.read("service_registrations_index/c1_r1/appliedDate"), "2024-03-05"
        )
        self.assertEqual(
            self.store.read("service_registrations_index/c1_r2/appliedDate"), "2024-01-10"
        )
        self.assertEqual(self.store.read("service_registrations_index/c1_r2/service"), "Unknown")
        self.assertEqual(list(self.store.read("employees_index")), ["u1"])

    def test_dry_run_writes_nothing(self):
        with patch("main.FirebaseRealtimeStore", return_value=self.store):
            response = self.client.post("/", json={"data": {"dryRun": True}})

        self.assertEqual(response.status_code, 200)
        result = response.get_json()["result"]
        self.assertTrue(result["dryRun"])
        self.assertEqual(result["registrations"], 2)
        self.assertIsNone(self.store.read("service_registrations_index"))
        self.assertIsNone(self.store.read("employees_index"))

    def test_invalid_day(self):
        with patch("main.FirebaseRealtimeStore", return_value=self.store):
            response = self.client.post("/", json={"data": {"today": "05/03/2024"}})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "INVALID_ARGUMENT")

    def test_store_failure(self):
        self.store.fail_paths.add("service_registrations_index")
        with patch("main.FirebaseRealtimeStore", return_value=self.store):
            response = self.client.post("/", json={"data": {}})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.get_json()["error"]["status"], "UNAVAILABLE")
        self.assertIsNone(self.store.read("employees_index"))


if __name__ == "__main__":
    unittest.main()
