"""
ticketflow Milestone Model

A milestone groups tickets under a due date and a dependency graph.
Blocking is never stored here: it is derived from depends_on on every tick.
"""

from typing import List
from pydantic import BaseModel, Field


class Milestone(BaseModel):
    """
    Named delivery target.

    depends_on is wired once, when milestones are created:
    - a new milestone depends on every existing one listing it in blocking_for
    - every existing milestone in the new one's blocking_for depends on it
    """
    name: str
    due_date: str
    created_at: str
    created_by: str

    tickets: List[int] = Field(default_factory=list)
    assigned_devs: List[str] = Field(default_factory=list)

    blocking_for: List[str] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)

    def add_dependency(self, name: str) -> None:
        if name not in self.depends_on:
            self.depends_on.append(name)
