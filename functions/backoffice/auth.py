"""
Account creation for new employees: Firebase Auth and an in-memory double.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from backoffice.errors import IdentityConflictError, StoreError

logger = logging.getLogger(__name__)


class AuthClient(Protocol):
    def create_user(self, email: str, password: str) -> str:
        """Create a login and return its uid, used as the employee key."""
        ...


@dataclass
class InMemoryAuthClient:
    users: Dict[str, str] = field(default_factory=dict)  # email -> uid

    def create_user(self, email: str, password: str) -> str:
        normalized = email.strip().lower()
        if normalized in self.users:
            raise IdentityConflictError("This email is already registered.")
        uid = uuid.uuid4().hex[:28]
        self.users[normalized] = uid
        return uid


@dataclass
class FirebaseAuthClient:
    app: Optional[firebase_admin.App] = None

    def create_user(self, email: str, password: str) -> str:
        try:
            user = firebase_auth.create_user(email=email, password=password, app=self.app)
        except firebase_auth.EmailAlreadyExistsError as e:
            raise IdentityConflictError("This email is already registered.") from e
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            logger.error("Failed to create auth user for %s: %s", email, e)
            raise StoreError("auth", str(e)) from e
        return user.uid
