import unittest
from datetime import date

from backoffice.errors import NotFoundError, ValidationError
from backoffice.gateway import InMemoryStore
from backoffice.records import CareerStatus
from backoffice.storage import InMemoryStorageClient, UploadedFile
from backoffice.submissions import (
    ACCEPT,
    DELETE_CAREER,
    DELETE_CONTACT,
    REJECT,
    SubmissionInbox,
)


def seed():
    return {
        "submissions": {
            "career_submissions": {
                "-k1": {"firstName": "Ada", "lastName": "Lovelace", "role": "Engineer"},
                "-k2": {
                    "firstName": "Alan",
                    "lastName": "Turing",
                    "role": "Analyst",
                    "resumeURL": "https://files.test/alan.pdf",
                },
                "-k3": {"firstName": "Grace", "lastName": "Hopper", "role": "Lead"},
            },
            "contactMessages": {
                "-m1": {"firstName": "Tim", "lastName": "Lee", "message": "Hello"},
                "-m2": {"firstName": "Kay", "lastName": "Jones", "message": "Hi"},
            },
        }
    }


class SubmissionInboxTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore(seed())
        self.storage = InMemoryStorageClient()
        self.inbox = SubmissionInbox(
            self.store, self.storage, today=lambda: date(2024, 3, 5)
        )
        self.inbox.load()

    def test_newest_first(self):
        self.assertEqual([s.key for s in self.inbox.career], ["-k3", "-k2", "-k1"])
        self.assertEqual([m.key for m in self.inbox.contact], ["-m2", "-m1"])

    def test_limit_keeps_the_latest(self):
        inbox = SubmissionInbox(self.store, limit=2)
        inbox.load()
        self.assertEqual([s.key for s in inbox.career], ["-k3", "-k2"])

    def test_closed_inbox_discards_late_results(self):
        inbox = SubmissionInbox(self.store)
        inbox.close()
        self.assertIsNone(inbox.load())
        self.assertEqual(inbox.career, [])
        self.assertEqual(inbox.contact, [])

    def test_accept(self):
        confirmation = self.inbox.request_action(ACCEPT, "-k1")
        self.assertEqual(
            confirmation.message,
            "Are you sure you want to accept the application from Ada Lovelace?",
        )
        self.assertEqual(self.store.read("submissions/career_submissions/-k1/status"), None)

        confirmation.confirm()
        self.assertEqual(self.store.read("submissions/career_submissions/-k1/status"), "Accepted")
        self.assertEqual(self.inbox.career[2].status, CareerStatus.ACCEPTED)

    def test_reject(self):
        self.inbox.request_action(REJECT, "-k2").confirm()
        self.assertEqual(self.store.read("submissions/career_submissions/-k2/status"), "Rejected")

    def test_delete_contact_and_career(self):
        self.inbox.request_action(DELETE_CONTACT, "-m1").confirm()
        self.inbox.request_action(DELETE_CAREER, "-k3").confirm()

        self.assertIsNone(self.store.read("submissions/contactMessages/-m1"))
        self.assertIsNone(self.store.read("submissions/career_submissions/-k3"))
        self.assertEqual([m.key for m in self.inbox.contact], ["-m2"])
        self.assertEqual([s.key for s in self.inbox.career], ["-k2", "-k1"])

    def test_unknown_action_or_key(self):
        with self.assertRaises(ValidationError):
            self.inbox.request_action("archive", "-k1")
        with self.assertRaises(NotFoundError):
            self.inbox.request_action(ACCEPT, "-m1")

    def test_resume_url(self):
        self.assertEqual(self.inbox.resume_url("-k2"), "https://files.test/alan.pdf")
        with self.assertRaises(NotFoundError) as ctx:
            self.inbox.resume_url("-k1")
        self.assertEqual(str(ctx.exception), "No resume URL found for this submission.")

    def test_submit_career_application_with_resume(self):
        submission = self.inbox.submit_career_application(
            {"first_name": "Kim", "last_name": "Ng", "email": "kim@example.com", "role": "QA"},
            resume=UploadedFile("cv.pdf", b"%PDF", "application/pdf"),
        )

        [path] = self.storage.stored_objects
        self.assertTrue(path.startswith(f"resumes/{submission.key}/"))
        self.assertTrue(path.endswith("_cv.pdf"))
        stored = self.store.read(f"submissions/career_submissions/{submission.key}")
        self.assertEqual(stored["resumeURL"], submission.resume_url)
        self.assertEqual(stored["status"], "Pending")
        self.assertEqual(stored["appliedDate"], "2024-03-05")

    def test_submit_contact_message_requires_fields(self):
        with self.assertRaises(ValidationError) as ctx:
            self.inbox.submit_contact_message({"first_name": "Kim"})
        self.assertEqual(ctx.exception.missing, ["last_name", "email", "message"])

        message = self.inbox.submit_contact_message(
            {"first_name": "Kim", "last_name": "Ng", "email": "kim@example.com", "message": "Hi"}
        )
        self.assertEqual(
            self.store.read(f"submissions/contactMessages/{message.key}/receivedDate"),
            "2024-03-05",
        )


if __name__ == "__main__":
    unittest.main()
