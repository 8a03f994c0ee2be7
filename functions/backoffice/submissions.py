"""
Inbox of career applications and contact messages sent from the public site.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from backoffice.confirmation import Confirmation, require_fields
from backoffice.constants import (
    CAREER_SUBMISSIONS_PATH,
    CONTACT_MESSAGES_PATH,
    RESUMES_PREFIX,
)
from backoffice.errors import NotFoundError, ValidationError
from backoffice.gateway import RangeQuery, StoreGateway, join_path
from backoffice.records import CareerStatus, CareerSubmission, ContactMessage
from backoffice.storage import StorageClient, UploadedFile, safe_file_name

logger = logging.getLogger(__name__)

ACCEPT = "accept"
REJECT = "reject"
DELETE_CONTACT = "delete_contact"
DELETE_CAREER = "delete_career"
ACTIONS = (ACCEPT, REJECT, DELETE_CONTACT, DELETE_CAREER)

CAREER_REQUIRED_FIELDS = ("first_name", "last_name", "email", "role")
CONTACT_REQUIRED_FIELDS = ("first_name", "last_name", "email", "message")


class SubmissionInbox:
    """
    Newest-first view of the latest submissions.

    close() marks the inbox as torn down; a load that finishes afterwards
    discards its results instead of applying them.
    """

    def __init__(
        self,
        store: StoreGateway,
        storage: Optional[StorageClient] = None,
        limit: int = 50,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.storage = storage
        self.limit = limit
        self.today = today
        self.career: List[CareerSubmission] = []
        self.contact: List[ContactMessage] = []
        self.cancelled = False

    def close(self) -> None:
        self.cancelled = True

    def load(self) -> Optional[Dict[str, list]]:
        query = RangeQuery(limit_to_last=self.limit)
        career = self.store.read_range(CAREER_SUBMISSIONS_PATH, query)
        contact = self.store.read_range(CONTACT_MESSAGES_PATH, query)
        if self.cancelled:
            logger.info("Inbox closed before submissions arrived; discarding them")
            return None
        self.career = [
            CareerSubmission.from_store(k, v) for k, v in reversed(list(career.items()))
        ]
        self.contact = [
            ContactMessage.from_store(k, v) for k, v in reversed(list(contact.items()))
        ]
        return {"career": self.career, "contact": self.contact}

    def _career(self, key: str) -> CareerSubmission:
        for submission in self.career:
            if submission.key == key:
                return submission
        raise NotFoundError(f"Career submission {key} was not found.")

    def _contact(self, key: str) -> ContactMessage:
        for message in self.contact:
            if message.key == key:
                return message
        raise NotFoundError(f"Contact message {key} was not found.")

    def resume_url(self, key: str) -> str:
        url = self._career(key).resume_url
        if not url:
            raise NotFoundError("No resume URL found for this submission.")
        return url

    def request_action(self, action: str, key: str) -> Confirmation:
        if action == ACCEPT:
            item = self._career(key)
            message = f"Are you sure you want to accept the application from {item.first_name} {item.last_name}?"
            apply = partial(self._set_status, item, CareerStatus.ACCEPTED)
        elif action == REJECT:
            item = self._career(key)
            message = f"Are you sure you want to reject the application from {item.first_name} {item.last_name}?"
            apply = partial(self._set_status, item, CareerStatus.REJECTED)
        elif action == DELETE_CONTACT:
            item = self._contact(key)
            message = (
                f"Are you sure you want to delete the message from {item.first_name} "
                f"{item.last_name}? This cannot be undone."
            )
            apply = partial(self._delete_contact, item)
        elif action == DELETE_CAREER:
            item = self._career(key)
            message = (
                f"Are you sure you want to delete the career application from "
                f"{item.first_name} {item.last_name}? This cannot be undone."
            )
            apply = partial(self._delete_career, item)
        else:
            raise ValidationError(["action"], f"Unknown action: {action}")
        return Confirmation(message=message, action=apply)

    def _set_status(self, item: CareerSubmission, status: CareerStatus) -> CareerSubmission:
        self.store.patch(join_path(CAREER_SUBMISSIONS_PATH, item.key), {"status": status.value})
        item.status = status
        logger.info("Career submission %s marked %s", item.key, status.value)
        return item

    def _delete_contact(self, item: ContactMessage) -> None:
        self.store.delete(join_path(CONTACT_MESSAGES_PATH, item.key))
        self.contact = [m for m in self.contact if m.key != item.key]
        logger.info("Deleted contact message %s", item.key)

    def _delete_career(self, item: CareerSubmission) -> None:
        self.store.delete(join_path(CAREER_SUBMISSIONS_PATH, item.key))
        self.career = [s for s in self.career if s.key != item.key]
        logger.info("Deleted career submission %s", item.key)

    # Writers used by the public site

    def submit_career_application(
        self, form: Dict[str, Any], resume: Optional[UploadedFile] = None
    ) -> CareerSubmission:
        require_fields(form, CAREER_REQUIRED_FIELDS)
        key = self.store.push_key(CAREER_SUBMISSIONS_PATH)
        resume_url = ""
        if resume is not None:
            if self.storage is None:
                raise ValidationError(["resume"], "Resume uploads are not configured.")
            path = f"{RESUMES_PREFIX}/{key}/{int(time.time() * 1000)}_{safe_file_name(resume.name)}"
            resume_url = self.storage.upload_bytes(path, resume.data, resume.content_type)

        submission = CareerSubmission(
            key=key,
            first_name=form["first_name"].strip(),
            last_name=form["last_name"].strip(),
            email=form["email"].strip(),
            phone=form.get("phone") or "",
            role=form["role"].strip(),
            experience=form.get("experience") or "",
            expected_salary=form.get("expected_salary") or "",
            message=form.get("message") or "",
            resume_url=resume_url,
            status=CareerStatus.PENDING,
            applied_date=self.today().isoformat(),
        )
        self.store.write(join_path(CAREER_SUBMISSIONS_PATH, key), submission.to_store())
        logger.info("Received career application %s", key)
        return submission

    def submit_contact_message(self, form: Dict[str, Any]) -> ContactMessage:
        require_fields(form, CONTACT_REQUIRED_FIELDS)
        key = self.store.push_key(CONTACT_MESSAGES_PATH)
        message = ContactMessage(
            key=key,
            first_name=form["first_name"].strip(),
            last_name=form["last_name"].strip(),
            email=form["email"].strip(),
            phone=form.get("phone") or "",
            subject=form.get("subject") or "",
            message=form["message"].strip(),
            received_date=self.today().isoformat(),
        )
        self.store.write(join_path(CONTACT_MESSAGES_PATH, key), message.to_store())
        logger.info("Received contact message %s", key)
        return message
