"""
Confirmation gate for destructive or classification-changing mutations.

A controller prepares a Confirmation describing what will happen; nothing is
written until the caller confirms it. A Confirmation without an action means
there is nothing to do (for instance an edit with no differences).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional

from backoffice.errors import ValidationError

logger = logging.getLogger(__name__)

NO_CHANGES = "no changes"


def humanize_field(name: str) -> str:
    """'work_email' or 'workEmail' -> 'Work Email'."""
    spaced = re.sub(r"([A-Z])", r" \1", name).replace("_", " ")
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split())


def changed_fields(
    original: Mapping[str, Any], updated: Mapping[str, Any], names: Iterable[str]
) -> List[str]:
    return [name for name in names if original.get(name) != updated.get(name)]


def describe_changes(changes: List[str]) -> str:
    if not changes:
        return NO_CHANGES
    return ", ".join(f"{humanize_field(name)} changed" for name in changes)


def require_fields(payload: Mapping[str, Any], names: Iterable[str]) -> None:
    """Raise ValidationError listing every blank required field."""
    missing = [
        name
        for name in names
        if payload.get(name) is None or str(payload.get(name)).strip() == ""
    ]
    if missing:
        raise ValidationError(missing)


@dataclass
class Confirmation:
    message: str
    action: Optional[Callable[[], Any]] = None
    changes: Optional[List[str]] = None

    @property
    def requires_action(self) -> bool:
        return self.action is not None

    def confirm(self) -> Any:
        """Run the pending mutation; a no-op confirmation writes nothing."""
        if self.action is None:
            logger.info("Nothing to apply: %s", self.message)
            return None
        return self.action()


def nothing_to_do(message: str) -> Confirmation:
    return Confirmation(message=message, action=None, changes=[])
