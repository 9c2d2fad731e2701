"""
ticketflow Ticket Model

Tagged-union tickets + append-only history

Core principles:
1. Ticket kind lives in details.kind (BUG / FEATURE_REQUEST / UI_FEEDBACK)
2. History is append-only, entries are frozen once recorded
3. Priority only ever moves up under escalation rules
"""

from enum import Enum
from typing import Optional, List, Literal, Union
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class TicketType(str, Enum):
    BUG = "BUG"
    FEATURE_REQUEST = "FEATURE_REQUEST"
    UI_FEEDBACK = "UI_FEEDBACK"


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    BLOCKED = "BLOCKED"  # Owning milestone waits on a dependency


class Priority(str, Enum):
    LOW = "LOW"            # 1
    MEDIUM = "MEDIUM"      # 2
    HIGH = "HIGH"          # 3
    CRITICAL = "CRITICAL"  # 4

    @property
    def rank(self) -> int:
        return list(Priority).index(self) + 1

    def next(self) -> "Priority":
        """Next tier up, capped at CRITICAL."""
        tiers = list(Priority)
        return tiers[min(tiers.index(self) + 1, len(tiers) - 1)]


class ExpertiseArea(str, Enum):
    FRONTEND = "FRONTEND"
    BACKEND = "BACKEND"
    DEVOPS = "DEVOPS"
    DESIGN = "DESIGN"
    DB = "DB"
    FULLSTACK = "FULLSTACK"


class Frequency(str, Enum):
    RARE = "RARE"
    OCCASIONAL = "OCCASIONAL"
    FREQUENT = "FREQUENT"
    ALWAYS = "ALWAYS"

    @property
    def weight(self) -> int:
        return FREQUENCY_WEIGHTS[self]


class Severity(str, Enum):
    MINOR = "MINOR"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"

    @property
    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self]


class BusinessValue(str, Enum):
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"

    @property
    def weight(self) -> int:
        return BUSINESS_VALUE_WEIGHTS[self]


class CustomerDemand(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"

    @property
    def weight(self) -> int:
        return CUSTOMER_DEMAND_WEIGHTS[self]


FREQUENCY_WEIGHTS = {
    Frequency.RARE: 1,
    Frequency.OCCASIONAL: 2,
    Frequency.FREQUENT: 3,
    Frequency.ALWAYS: 4,
}

SEVERITY_WEIGHTS = {
    Severity.MINOR: 1,
    Severity.MODERATE: 2,
    Severity.SEVERE: 3,
}

BUSINESS_VALUE_WEIGHTS = {
    BusinessValue.S: 1,
    BusinessValue.M: 3,
    BusinessValue.L: 6,
    BusinessValue.XL: 10,
}

CUSTOMER_DEMAND_WEIGHTS = {
    CustomerDemand.LOW: 1,
    CustomerDemand.MEDIUM: 3,
    CustomerDemand.HIGH: 6,
    CustomerDemand.VERY_HIGH: 10,
}


class HistoryAction(str, Enum):
    # Developer / manager driven
    ADDED_TO_MILESTONE = "ADDED_TO_MILESTONE"
    ASSIGNED = "ASSIGNED"
    DE_ASSIGNED = "DE-ASSIGNED"
    STATUS_CHANGED = "STATUS_CHANGED"

    # SYSTEM driven (escalation engine)
    PRIORITY_ESCALATION = "PRIORITY_ESCALATION"
    DEADLINE_IMMINENT_ESCALATION = "DEADLINE_IMMINENT_ESCALATION"
    LATE_UNBLOCK_ESCALATION = "LATE_UNBLOCK_ESCALATION"
    AUTO_UNASSIGN = "AUTO_UNASSIGN"
    MILESTONE_BLOCKED = "MILESTONE_BLOCKED"
    MILESTONE_UNBLOCKED = "MILESTONE_UNBLOCKED"


# =============================================================================
# TYPE-SPECIFIC DETAILS
# =============================================================================

class BugDetails(BaseModel):
    kind: Literal["BUG"] = "BUG"
    frequency: Frequency
    severity: Severity

    expected_behavior: Optional[str] = None
    actual_behavior: Optional[str] = None
    environment: Optional[str] = None
    error_code: Optional[int] = None


class FeatureRequestDetails(BaseModel):
    kind: Literal["FEATURE_REQUEST"] = "FEATURE_REQUEST"
    business_value: BusinessValue
    customer_demand: CustomerDemand


class UIFeedbackDetails(BaseModel):
    kind: Literal["UI_FEEDBACK"] = "UI_FEEDBACK"
    business_value: BusinessValue
    usability_score: int = Field(..., ge=1, le=10)

    ui_element_id: Optional[str] = None
    screenshot_url: Optional[str] = None
    suggested_fix: Optional[str] = None


TicketDetails = Union[BugDetails, FeatureRequestDetails, UIFeedbackDetails]


# =============================================================================
# CORE MODELS
# =============================================================================

class HistoryEntry(BaseModel):
    """
    One line of a ticket's audit trail.

    Doubles as the escalation ledger: the number of PRIORITY_ESCALATION
    entries on a ticket is how many periodic bumps it already received.
    """
    model_config = ConfigDict(frozen=True)

    action: HistoryAction
    by: str
    timestamp: str

    from_state: Optional[str] = None
    to_state: Optional[str] = None
    description: Optional[str] = None
    milestone: Optional[str] = None


class Comment(BaseModel):
    author: str
    content: str
    created_at: str


class Ticket(BaseModel):
    """
    The core ticket entity.

    Common fields sit on the ticket, kind-specific fields on details.
    reported_by == "" marks an anonymous report.
    """
    id: int
    title: str = ""
    description: Optional[str] = None

    details: TicketDetails = Field(..., discriminator="kind")

    status: TicketStatus = TicketStatus.OPEN
    business_priority: Priority = Priority.LOW
    expertise_area: ExpertiseArea

    reported_by: str = ""
    created_at: str

    # Assignment (set by the workflow, revoked by the engine)
    assigned_to: Optional[str] = None
    assigned_at: Optional[str] = None
    solved_at: Optional[str] = None

    history: List[HistoryEntry] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)

    @property
    def type(self) -> TicketType:
        return TicketType(self.details.kind)

    @property
    def is_anonymous(self) -> bool:
        return not self.reported_by

    @property
    def is_active(self) -> bool:
        """OPEN or IN_PROGRESS, the only states escalation rules touch."""
        return self.status in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)

    @property
    def is_settled(self) -> bool:
        return self.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED)

    def record(self, entry: HistoryEntry) -> HistoryEntry:
        self.history.append(entry)
        return entry

    def count_actions(self, action: HistoryAction) -> int:
        return sum(1 for entry in self.history if entry.action == action)
