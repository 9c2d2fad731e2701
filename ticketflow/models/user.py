"""
ticketflow User Models

Reporters file tickets, developers work them, managers own milestones.
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field

from .ticket import ExpertiseArea


class Role(str, Enum):
    REPORTER = "REPORTER"
    DEVELOPER = "DEVELOPER"
    MANAGER = "MANAGER"


class Seniority(str, Enum):
    JUNIOR = "JUNIOR"
    MID = "MID"
    SENIOR = "SENIOR"


class User(BaseModel):
    """Anyone known to the tracker."""
    username: str
    email: Optional[str] = None
    role: Role = Role.REPORTER


class Developer(User):
    role: Role = Role.DEVELOPER

    expertise_area: ExpertiseArea
    seniority: Seniority
    hire_date: Optional[str] = None

    # Last value written by the performance report
    performance_score: float = 0.0


class Manager(User):
    role: Role = Role.MANAGER

    hire_date: Optional[str] = None
    subordinates: List[str] = Field(default_factory=list)
