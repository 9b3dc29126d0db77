"""
Collaborator interfaces used by the planning core.

The core never talks HTTP itself; it is handed objects implementing these
interfaces. Implementations raise PlannerError subclasses on failure.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence

from cycle_planner.models import Comment, TimeOffRecord, WorkItem


class IssueQueryClient(ABC):
    """Read access to the issue tracker, returning adapted WorkItems."""

    @abstractmethod
    def fetch_by_query(self, query: str, fields: Optional[Sequence[str]] = None) -> List[WorkItem]:
        """Run a tracker query and return every matching item."""

    @abstractmethod
    def fetch_by_id(self, key: str, fields: Optional[Sequence[str]] = None) -> WorkItem:
        """Fetch a single item by key."""

    @abstractmethod
    def fetch_children_via_hierarchy_api(
        self,
        container_key: str,
        fields: Optional[Sequence[str]] = None
    ) -> List[WorkItem]:
        """Fetch the direct children of a container through the hierarchy endpoint."""

    def fetch_comments(self, key: str) -> List[Comment]:
        """Fetch comments of an item. Clients without comment support return none."""
        return []


class TimeOffSource(ABC):
    """Read access to approved time off."""

    @abstractmethod
    def fetch_time_off(self, subdomain: str, start: date, end: date) -> List[TimeOffRecord]:
        """Return time-off records overlapping the date range."""


class Summarizer(ABC):
    """Turns extracted technical notes into a short narrative."""

    @abstractmethod
    def summarize(self, content: str) -> Optional[str]:
        """Return a summary, or None when no summary could be produced."""
