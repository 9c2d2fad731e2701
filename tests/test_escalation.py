from datetime import date, timedelta

from factories import make_bug, make_feature, make_milestone

from ticketflow.config import EscalationPolicy
from ticketflow.models import HistoryAction, Priority, TicketStatus
from ticketflow.services import EscalationEngine


def _setup_single(store, milestones, ticket, **milestone_fields):
    store.add_ticket(ticket)
    milestone_fields.setdefault("due_date", "2024-01-10")
    milestone_fields.setdefault("created_at", "2024-01-01")
    milestone_fields.setdefault("assigned_devs", ["alice", "carol"])
    return milestones.create_milestone(
        "M1", created_by="boss", tickets=[ticket.id], **milestone_fields
    )


def _assign(ticket, username, when="2024-01-01"):
    ticket.assigned_to = username
    ticket.assigned_at = when
    ticket.status = TicketStatus.IN_PROGRESS


def _drain_all(sink, *usernames):
    for username in usernames:
        sink.drain(username)


def _days(start, count):
    first = date.fromisoformat(start)
    return [(first + timedelta(days=offset)).isoformat() for offset in range(count)]


# =============================================================================
# Rule A: periodic escalation
# =============================================================================

def test_single_bump_after_interval(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)

    summary = engine.advance("2024-01-04")

    assert ticket.business_priority == Priority.MEDIUM
    assert ticket.count_actions(HistoryAction.PRIORITY_ESCALATION) == 1
    assert summary.escalations == 1

    entry = ticket.history[-1]
    assert entry.by == "SYSTEM"
    assert entry.milestone == "M1"
    assert entry.to_state == "MEDIUM"
    assert entry.timestamp == "2024-01-04"


def test_same_day_twice_is_a_noop(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)

    engine.advance("2024-01-04")
    history_before = list(ticket.history)
    summary = engine.advance("2024-01-04")

    assert ticket.business_priority == Priority.MEDIUM
    assert ticket.history == history_before
    assert not summary.changed


def test_no_bump_before_first_interval(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)

    engine.advance("2024-01-02")

    assert ticket.business_priority == Priority.LOW
    assert ticket.count_actions(HistoryAction.PRIORITY_ESCALATION) == 0


def test_missed_days_are_caught_up(store, milestones, sink, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)
    _drain_all(sink, "alice", "carol")

    summary = engine.advance("2024-01-09")

    assert ticket.business_priority == Priority.CRITICAL
    assert ticket.count_actions(HistoryAction.PRIORITY_ESCALATION) == 3
    # Already CRITICAL when the deadline rule looks at it
    assert ticket.count_actions(HistoryAction.DEADLINE_IMMINENT_ESCALATION) == 0
    assert summary.notifications == 0
    assert sink.inbox("carol") == []


def test_bumps_stop_at_critical(store, milestones, engine):
    ticket = make_bug(0, business_priority=Priority.HIGH)
    _setup_single(store, milestones, ticket, due_date="2024-03-01")

    engine.advance("2024-01-30")

    assert ticket.business_priority == Priority.CRITICAL
    assert ticket.count_actions(HistoryAction.PRIORITY_ESCALATION) == 1


def test_settled_tickets_are_not_escalated(store, milestones, engine):
    ticket = make_bug(0, status=TicketStatus.RESOLVED)
    _setup_single(store, milestones, ticket)

    engine.advance("2024-01-09")

    assert ticket.business_priority == Priority.LOW
    assert ticket.history[-1].action == HistoryAction.ADDED_TO_MILESTONE


def test_custom_interval(store, milestones, sink):
    engine = EscalationEngine(store, sink, policy=EscalationPolicy(interval_days=1))
    ticket = make_feature(0)
    _setup_single(store, milestones, ticket, due_date="2024-02-01")

    engine.advance("2024-01-02")

    assert ticket.business_priority == Priority.HIGH
    assert ticket.count_actions(HistoryAction.PRIORITY_ESCALATION) == 2


def test_bump_beyond_seniority_unassigns(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)
    _assign(ticket, "alice")

    summary = engine.advance("2024-01-06")

    assert ticket.business_priority == Priority.HIGH
    assert ticket.assigned_to is None
    assert ticket.assigned_at is None
    assert ticket.status == TicketStatus.OPEN
    assert summary.unassigned == 1
    actions = [entry.action for entry in ticket.history]
    assert actions[-1] == HistoryAction.AUTO_UNASSIGN
    assert actions[-2] == HistoryAction.PRIORITY_ESCALATION


# =============================================================================
# Rule B: deadline imminent
# =============================================================================

def test_deadline_forces_critical_and_unassigns_junior(store, milestones, sink, engine):
    ticket = make_bug(0, business_priority=Priority.HIGH)
    _setup_single(
        store, milestones, ticket,
        created_at="2024-01-08", assigned_devs=["alice"]
    )
    _assign(ticket, "alice", when="2024-01-08")
    _drain_all(sink, "alice")

    summary = engine.advance("2024-01-09")

    assert ticket.business_priority == Priority.CRITICAL
    assert ticket.assigned_to is None
    assert ticket.status == TicketStatus.OPEN
    actions = [entry.action for entry in ticket.history]
    assert actions[-2:] == [
        HistoryAction.DEADLINE_IMMINENT_ESCALATION,
        HistoryAction.AUTO_UNASSIGN,
    ]
    assert summary.unassigned == 1
    assert sink.inbox("alice") == [
        "Milestone M1 is due tomorrow. All unresolved tickets are now CRITICAL."
    ]


def test_deadline_keeps_senior_assignee(store, milestones, engine):
    ticket = make_bug(0, business_priority=Priority.MEDIUM)
    _setup_single(store, milestones, ticket, created_at="2024-01-08")
    _assign(ticket, "carol", when="2024-01-08")

    engine.advance("2024-01-09")

    assert ticket.business_priority == Priority.CRITICAL
    assert ticket.assigned_to == "carol"
    assert ticket.status == TicketStatus.IN_PROGRESS


def test_deadline_fires_once(store, milestones, sink, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket, created_at="2024-01-08")
    _drain_all(sink, "alice", "carol")

    engine.advance("2024-01-09")
    engine.advance("2024-01-09")

    assert ticket.count_actions(HistoryAction.DEADLINE_IMMINENT_ESCALATION) == 1
    assert len(sink.inbox("carol")) == 1


def test_deadline_notifies_only_known_developers(store, milestones, sink, engine):
    ticket = make_bug(0)
    _setup_single(
        store, milestones, ticket,
        created_at="2024-01-08", assigned_devs=["carol", "ghost"]
    )
    _drain_all(sink, "carol")

    summary = engine.advance("2024-01-09")

    assert summary.notifications == 1
    assert len(sink.inbox("carol")) == 1
    assert sink.inbox("ghost") == []


def test_unknown_assignee_is_left_alone(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket, created_at="2024-01-08")
    _assign(ticket, "ghost", when="2024-01-08")

    summary = engine.advance("2024-01-09")

    assert ticket.business_priority == Priority.CRITICAL
    assert ticket.assigned_to == "ghost"
    assert summary.unassigned == 0


# =============================================================================
# Blocking
# =============================================================================

def _setup_chain(store, milestones, second_due="2024-01-10"):
    first = make_bug(0)
    second = make_bug(1)
    store.add_ticket(first)
    store.add_ticket(second)
    milestones.create_milestone(
        "M1", due_date="2024-01-31", created_at="2024-01-01", created_by="boss",
        tickets=[0], blocking_for=["M2"]
    )
    milestones.create_milestone(
        "M2", due_date=second_due, created_at="2024-01-01", created_by="boss",
        tickets=[1], assigned_devs=["bob", "carol"]
    )
    return first, second


def test_blocked_milestone_freezes_tickets(store, milestones, engine):
    _, second = _setup_chain(store, milestones)

    summary = engine.advance("2024-01-02")
    assert summary.blocked == ["M2"]
    assert second.status == TicketStatus.BLOCKED
    assert second.history[-1].action == HistoryAction.MILESTONE_BLOCKED

    engine.advance("2024-01-07")
    assert second.business_priority == Priority.LOW
    assert second.count_actions(HistoryAction.PRIORITY_ESCALATION) == 0
    assert second.count_actions(HistoryAction.MILESTONE_BLOCKED) == 1


def test_late_unblock_escalates_once(store, milestones, sink, engine):
    first, second = _setup_chain(store, milestones)
    _drain_all(sink, "bob", "carol")

    engine.advance("2024-01-02")
    first.status = TicketStatus.CLOSED
    summary = engine.advance("2024-01-12")

    assert summary.unblocked == ["M2"]
    assert second.status == TicketStatus.OPEN
    assert second.business_priority == Priority.CRITICAL
    assert second.count_actions(HistoryAction.LATE_UNBLOCK_ESCALATION) == 1
    assert second.count_actions(HistoryAction.PRIORITY_ESCALATION) == 0
    assert second.count_actions(HistoryAction.DEADLINE_IMMINENT_ESCALATION) == 0
    assert sink.inbox("bob") == [
        "Milestone M2 was unblocked after due date. All active tickets are now CRITICAL."
    ]

    engine.advance("2024-01-12")
    engine.advance("2024-01-13")
    assert second.count_actions(HistoryAction.LATE_UNBLOCK_ESCALATION) == 1
    assert len(sink.inbox("bob")) == 1


def test_on_time_unblock_restores_and_notifies(store, milestones, sink, engine):
    first, second = _setup_chain(store, milestones)
    _assign(second, "carol")
    _drain_all(sink, "bob", "carol")

    engine.advance("2024-01-02")
    assert second.status == TicketStatus.BLOCKED

    first.status = TicketStatus.CLOSED
    summary = engine.advance("2024-01-05")

    assert summary.unblocked == ["M2"]
    assert second.status == TicketStatus.IN_PROGRESS
    assert second.assigned_to == "carol"
    assert sink.inbox("carol") == [
        "Milestone M2 is now unblocked. Blocked tickets were reopened."
    ]
    # Rule A resumes on the unblock day
    assert second.business_priority == Priority.MEDIUM


def test_blocked_round_trip_returns_to_active(store, milestones, engine):
    first, second = _setup_chain(store, milestones, second_due="2024-03-01")

    engine.advance("2024-01-02")
    first.status = TicketStatus.IN_PROGRESS
    engine.advance("2024-01-03")
    assert second.status == TicketStatus.BLOCKED

    first.status = TicketStatus.CLOSED
    engine.advance("2024-01-04")
    assert second.status == TicketStatus.OPEN
    assert second.history[-2].action == HistoryAction.MILESTONE_UNBLOCKED


def test_unknown_dependency_does_not_block(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)
    store.find_milestone("M1").add_dependency("nowhere")

    summary = engine.advance("2024-01-04")

    assert summary.blocked == []
    assert ticket.status == TicketStatus.OPEN
    assert ticket.business_priority == Priority.MEDIUM


# =============================================================================
# Properties
# =============================================================================

def test_priority_never_decreases(store, milestones, engine):
    tickets = [make_bug(0), make_feature(1, business_priority=Priority.MEDIUM)]
    for ticket in tickets:
        store.add_ticket(ticket)
    milestones.create_milestone(
        "M1", due_date="2024-01-12", created_at="2024-01-01", created_by="boss",
        tickets=[0, 1]
    )

    seen = {ticket.id: ticket.business_priority.rank for ticket in tickets}
    for day in _days("2024-01-01", 20):
        engine.advance(day)
        for ticket in tickets:
            assert ticket.business_priority.rank >= seen[ticket.id]
            seen[ticket.id] = ticket.business_priority.rank


def test_replaying_every_day_matches_single_tick(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket, due_date="2024-02-01")

    for day in _days("2024-01-01", 8):
        engine.advance(day)
        engine.advance(day)

    assert ticket.business_priority == Priority.HIGH
    assert ticket.count_actions(HistoryAction.PRIORITY_ESCALATION) == 2


def test_unreadable_today_changes_nothing(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)

    summary = engine.advance("not-a-date")

    assert summary.day is None
    assert not summary.changed
    assert ticket.business_priority == Priority.LOW


def test_unreadable_milestone_dates_are_skipped(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket, due_date="someday")

    summary = engine.advance("2024-01-09")

    assert summary.skipped == ["M1"]
    assert ticket.business_priority == Priority.LOW


def test_accepts_date_objects(store, milestones, engine):
    ticket = make_bug(0)
    _setup_single(store, milestones, ticket)

    engine.advance(date(2024, 1, 4))

    assert ticket.business_priority == Priority.MEDIUM


def test_unknown_ticket_ids_are_skipped(store, engine):
    store.add_ticket(make_bug(0))
    store.add_milestone(make_milestone("M", [0, 99]))

    summary = engine.advance("2024-01-04")

    assert store.get_ticket(0).business_priority == Priority.MEDIUM
    assert summary.escalations == 1
    assert store.get_ticket(99) is None
