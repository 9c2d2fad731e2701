"""Shared fixtures: one store, one mailbox and the services wired around them.

Also puts the project root on sys.path so `import ticketflow` works when
pytest runs outside an editable install.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ticketflow.models import Developer, ExpertiseArea, Manager, Seniority  # noqa: E402
from ticketflow.services import (  # noqa: E402
    EscalationEngine,
    MailboxSink,
    MilestoneService,
    ReportService,
    SearchService,
    WorkflowService,
)
from ticketflow.store import TicketStore  # noqa: E402


def _loaded_store():
    data = TicketStore()
    data.load_users([
        Manager(username="boss", subordinates=["carol", "alice", "bob"]),
        Developer(username="alice", expertise_area=ExpertiseArea.BACKEND, seniority=Seniority.JUNIOR),
        Developer(username="bob", expertise_area=ExpertiseArea.FULLSTACK, seniority=Seniority.MID),
        Developer(username="carol", expertise_area=ExpertiseArea.BACKEND, seniority=Seniority.SENIOR),
    ])
    return data


@pytest.fixture
def testing_store():
    """Fresh tracker, still in its testing phase."""
    return _loaded_store()


@pytest.fixture
def store():
    """Tracker past its testing phase, where milestones and assignment happen."""
    data = _loaded_store()
    data.testing_phase_start = "2023-12-01"
    data.testing_phase = False
    return data


@pytest.fixture
def sink():
    return MailboxSink()


@pytest.fixture
def engine(store, sink):
    return EscalationEngine(store, sink)


@pytest.fixture
def milestones(store, sink):
    return MilestoneService(store, sink)


@pytest.fixture
def workflow(store):
    return WorkflowService(store)


@pytest.fixture
def reports(store):
    return ReportService(store)


@pytest.fixture
def search(store):
    return SearchService(store)
