"""
Listing side-effect collaborator.

Some tasks ("update business hours", "add website") can be pushed straight
to the listing provider when the user completes them. The engine never talks
to the provider itself: `complete` calls a `ListingUpdater` inside its
transaction and only records the outcome. If the updater raises, the whole
completion (status, ledger, unlocks) is rolled back and surfaced as
CollaboratorError.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from engagement.models.task import Task


@dataclass(frozen=True)
class SyncOutcome:
    updated: bool = False
    note: Optional[str] = None


class ListingUpdater(Protocol):
    def push(self, task: Task, payload: Optional[dict[str, Any]]) -> SyncOutcome:
        ...


class NullListingUpdater:
    """Default: nothing is pushed anywhere."""

    def push(self, task: Task, payload: Optional[dict[str, Any]]) -> SyncOutcome:
        return SyncOutcome()
