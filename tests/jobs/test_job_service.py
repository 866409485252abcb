"""Tests for job service."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from kahraba.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    JobNotFoundError,
    SettlementError,
    UnauthorizedError,
)
from kahraba.jobs import ActorRole, AddOn, JobService, JobStatus
from kahraba.ledger import TransactionType
from kahraba.storage import InMemoryStorage
from kahraba.types import VersionConflictError


class TestJobCreation:
    """Tests for job creation."""

    def test_create_job_broadcasts(self, service, clock):
        """New jobs are immediately visible to electricians."""
        job = service.create_job("c1", 30, description="Sparks from outlet", city="Amman")

        assert job.status == JobStatus.BROADCAST
        assert job.version == 1
        assert job.electrician_id is None
        assert job.created_at == clock.now
        assert [e.status for e in job.timeline] == [JobStatus.CREATED, JobStatus.BROADCAST]
        assert job.timeline[0].actor_role == ActorRole.CUSTOMER
        assert job.timeline[0].actor_id == "c1"
        assert job.timeline[1].actor_role == ActorRole.SYSTEM

    def test_create_job_with_add_ons(self, service):
        """Initial add-ons count toward the total."""
        job = service.create_job(
            "c1",
            30,
            add_ons=[{"name": "Extra outlet", "price": "15"}, AddOn("x1", "Dimmer", 5)],
        )

        assert job.total_price == Decimal("50")
        assert job.add_ons[0].id == "job-000002"
        assert job.add_ons[1].id == "x1"

    def test_create_job_persists(self, service, storage):
        job = service.create_job("c1", 30)
        assert storage.get_job(job.id) == job

    @pytest.mark.parametrize("price", [0, -10, "abc"])
    def test_invalid_price_rejected(self, service, price):
        with pytest.raises(ValueError):
            service.create_job("c1", price)

    def test_customer_required(self, service):
        with pytest.raises(ValueError):
            service.create_job("", 30)

    def test_notifier_called(self, storage, clock):
        notifier = MagicMock()
        service = JobService(storage, clock=clock, notifier=notifier)

        job = service.create_job("c1", 30)

        notifier.notify.assert_called_once_with(job.id, "BROADCAST")


class TestJobRetrieval:
    """Tests for job retrieval."""

    def test_get_unknown_job(self, service):
        with pytest.raises(JobNotFoundError):
            service.get_job("nope")

    def test_list_newest_first(self, service):
        first = service.create_job("c1", 30)
        second = service.create_job("c2", 40)

        jobs = service.list_jobs()

        assert [j.id for j in jobs] == [second.id, first.id]

    def test_filter_by_customer_and_electrician(self, service):
        mine = service.create_job("c1", 30)
        service.create_job("c2", 30)
        service.accept_broadcast(mine.id, "e1")

        assert [j.id for j in service.get_jobs_for_customer("c1")] == [mine.id]
        assert [j.id for j in service.get_jobs_for_electrician("e1")] == [mine.id]
        assert service.get_jobs_for_electrician("e2") == []

    def test_filter_by_status(self, service):
        job = service.create_job("c1", 30)
        service.create_job("c1", 30)
        service.cancel_job(job.id, ActorRole.CUSTOMER, "c1")

        cancelled = service.list_jobs(status=JobStatus.CANCELLED)

        assert [j.id for j in cancelled] == [job.id]

    def test_count_matches_filters_not_page(self, service):
        job = service.create_job("c1", 30)
        service.create_job("c1", 30)
        service.create_job("c2", 30)
        service.accept_broadcast(job.id, "e1")

        assert len(service.list_jobs(limit=1)) == 1
        assert service.count_jobs() == 3
        assert service.count_jobs(customer_id="c1") == 2
        assert service.count_jobs(electrician_id="e1", status=JobStatus.ACCEPTED) == 1
        assert service.count_jobs(status=JobStatus.CANCELLED) == 0

    def test_find_broadcast_job_is_newest_unassigned(self, service):
        older = service.create_job("c1", 30)
        newer = service.create_job("c2", 30)
        assert service.find_broadcast_job().id == newer.id

        service.accept_broadcast(newer.id, "e1")
        assert service.find_broadcast_job().id == older.id

    def test_find_broadcast_job_none(self, service):
        assert service.find_broadcast_job() is None

    def test_history(self, service, accepted_job):
        history = service.get_job_history(accepted_job.id)
        assert [e.status for e in history] == [
            JobStatus.CREATED,
            JobStatus.BROADCAST,
            JobStatus.ACCEPTED,
        ]


class TestAcceptance:
    """Tests for offer acceptance."""

    def test_accept_binds_electrician(self, service, clock):
        job = service.create_job("c1", 30)
        clock.advance(seconds=20)

        accepted = service.accept_broadcast(job.id, "e1", "Omar")

        assert accepted.status == JobStatus.ACCEPTED
        assert accepted.electrician_id == "e1"
        assert accepted.electrician_name == "Omar"
        assert accepted.accepted_at == clock.now
        assert accepted.version == 2
        assert accepted.timeline[-1].actor_id == "e1"

    def test_second_acceptance_fails(self, service):
        job = service.create_job("c1", 30)
        service.accept_broadcast(job.id, "e1")

        with pytest.raises(InvalidTransitionError):
            service.accept_broadcast(job.id, "e2")
        assert service.get_job(job.id).electrician_id == "e1"

    def test_cancelled_job_cannot_be_accepted(self, service):
        job = service.create_job("c1", 30)
        service.cancel_job(job.id, ActorRole.CUSTOMER, "c1")

        with pytest.raises(InvalidTransitionError):
            service.accept_broadcast(job.id, "e1")

    def test_electrician_id_required(self, service):
        job = service.create_job("c1", 30)
        with pytest.raises(UnauthorizedError):
            service.accept_broadcast(job.id, "")

    def test_unknown_job(self, service):
        with pytest.raises(JobNotFoundError):
            service.accept_broadcast("nope", "e1")


class TestTransitions:
    """Tests for the electrician's linear path and completion."""

    def test_advance_walks_linear_path(self, service, accepted_job):
        statuses = []
        for _ in range(4):
            statuses.append(service.advance(accepted_job.id, "e1").status)

        assert statuses == [
            JobStatus.EN_ROUTE,
            JobStatus.ARRIVED,
            JobStatus.IN_PROGRESS,
            JobStatus.COMPLETED,
        ]
        with pytest.raises(InvalidTransitionError):
            service.advance(accepted_job.id, "e1")

    def test_each_transition_appends_one_event(self, service, accepted_job):
        job = service.apply_transition(
            accepted_job.id, JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e1", note="Leaving now"
        )
        assert len(job.timeline) == len(accepted_job.timeline) + 1
        assert job.timeline[:-1] == accepted_job.timeline
        assert job.timeline[-1].note == "Leaving now"
        assert job.version == accepted_job.version + 1

    def test_completion_settles(self, service, ledger, accepted_job, clock, walk_to):
        job = walk_to(accepted_job.id, "e1", JobStatus.COMPLETED)

        assert job.status == JobStatus.COMPLETED
        assert job.completed_at == clock.now
        entries = ledger.get_transactions("e1")
        assert [(t.type, t.amount) for t in entries] == [
            (TransactionType.EARNING, Decimal("25.50")),
            (TransactionType.COMMISSION, Decimal("4.50")),
        ]
        assert all(t.job_id == job.id for t in entries)
        assert entries[0].description == f"Job #{job.short_id} completed"
        assert entries[1].description == f"Platform fee for Job #{job.short_id}"

    def test_wrong_electrician_cannot_advance(self, service, accepted_job):
        with pytest.raises(UnauthorizedError):
            service.apply_transition(
                accepted_job.id, JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e2"
            )
        assert service.get_job(accepted_job.id).version == accepted_job.version

    def test_stale_expected_version(self, service, accepted_job):
        service.advance(accepted_job.id, "e1")

        with pytest.raises(ConcurrentModificationError):
            service.apply_transition(
                accepted_job.id,
                JobStatus.ARRIVED,
                ActorRole.ELECTRICIAN,
                "e1",
                expected_version=accepted_job.version,
            )

    def test_unknown_job(self, service):
        with pytest.raises(JobNotFoundError):
            service.apply_transition("nope", JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e1")

    def test_notifier_failure_does_not_undo_transition(self, storage, clock):
        notifier = MagicMock()
        notifier.notify.side_effect = RuntimeError("push gateway down")
        service = JobService(storage, clock=clock, notifier=notifier)
        job = service.create_job("c1", 30)

        accepted = service.accept_broadcast(job.id, "e1")

        assert accepted.status == JobStatus.ACCEPTED
        assert storage.get_job(job.id).status == JobStatus.ACCEPTED


class TestConcurrency:
    """Tests for the compare-and-set retry loop."""

    def test_retries_after_version_conflict(self, service, storage, accepted_job):
        real_update = storage.update_job
        calls = []

        def flaky_update(job, expected_version, transactions=()):
            calls.append(expected_version)
            if len(calls) == 1:
                raise VersionConflictError("jobs", job.id, expected_version, expected_version + 1)
            return real_update(job, expected_version, transactions)

        storage.update_job = flaky_update

        job = service.apply_transition(
            accepted_job.id, JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e1"
        )

        assert job.status == JobStatus.EN_ROUTE
        assert len(calls) == 2

    def test_gives_up_after_max_attempts(self, service, storage, accepted_job, config):
        def always_conflict(job, expected_version, transactions=()):
            raise VersionConflictError("jobs", job.id, expected_version, expected_version + 1)

        storage.update_job = always_conflict

        with pytest.raises(ConcurrentModificationError, match="gave up"):
            service.apply_transition(
                accepted_job.id, JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e1"
            )

    def test_conflict_with_expected_version_fails_fast(self, service, storage, accepted_job):
        calls = []

        def conflict(job, expected_version, transactions=()):
            calls.append(expected_version)
            raise VersionConflictError("jobs", job.id, expected_version, expected_version + 1)

        storage.update_job = conflict

        with pytest.raises(ConcurrentModificationError):
            service.advance(accepted_job.id, "e1")
        assert len(calls) == 1

    def test_write_failure_during_settlement(self, service, storage, accepted_job, walk_to):
        job = walk_to(accepted_job.id, "e1", JobStatus.IN_PROGRESS)

        def broken(job, expected_version, transactions=()):
            raise ValueError("disk full")

        storage.update_job = broken

        with pytest.raises(SettlementError):
            service.advance(job.id, "e1")


class TestCancellation:
    """Tests for job cancellation."""

    def test_customer_cancels_with_reason(self, service, clock):
        job = service.create_job("c1", 30)

        cancelled = service.cancel_job(job.id, ActorRole.CUSTOMER, "c1", reason="Fixed it")

        assert cancelled.status == JobStatus.CANCELLED
        assert cancelled.cancellation_reason == "Fixed it"
        assert cancelled.cancelled_at == clock.now
        assert cancelled.timeline[-1].note == "Fixed it"

    def test_cancel_drops_pending_add_ons(self, service, accepted_job):
        service.request_add_ons(accepted_job.id, "e1", [{"name": "Rewire", "price": 80}])

        cancelled = service.cancel_job(accepted_job.id, ActorRole.ELECTRICIAN, "e1")

        assert cancelled.pending_add_ons == ()

    def test_cancel_discards_approved_add_ons(self, service, storage, accepted_job):
        service.request_add_ons(accepted_job.id, "e1", [{"name": "Breaker", "price": 10}])
        approved = service.approve_add_ons(accepted_job.id, "c1")
        assert approved.total_price == Decimal("40")

        cancelled = service.cancel_job(accepted_job.id, ActorRole.CUSTOMER, "c1")

        assert cancelled.add_ons == ()
        assert cancelled.total_price == cancelled.base_price == Decimal("30")
        assert storage.get_job(accepted_job.id).add_ons == ()

    def test_cancel_writes_no_ledger_entries(self, service, ledger, accepted_job):
        service.cancel_job(accepted_job.id, ActorRole.CUSTOMER, "c1")
        assert ledger.get_transactions("e1") == []

    def test_cancel_twice_fails(self, service):
        job = service.create_job("c1", 30)
        service.cancel_job(job.id, ActorRole.CUSTOMER, "c1")

        with pytest.raises(InvalidTransitionError):
            service.cancel_job(job.id, ActorRole.CUSTOMER, "c1")

    def test_stranger_cannot_cancel(self, service):
        job = service.create_job("c1", 30)
        with pytest.raises(UnauthorizedError):
            service.cancel_job(job.id, ActorRole.CUSTOMER, "c2")


class TestAdminOverride:
    """Tests for forced status changes."""

    def test_force_records_reason(self, service):
        job = service.create_job("c1", 30)

        forced = service.force_status(job.id, JobStatus.CANCELLED, "admin1", "  Duplicate  ")

        assert forced.status == JobStatus.CANCELLED
        event = forced.timeline[-1]
        assert event.actor_role == ActorRole.ADMIN
        assert event.actor_id == "admin1"
        assert event.note == "Duplicate"

    def test_reason_required(self, service):
        job = service.create_job("c1", 30)
        with pytest.raises(ValueError):
            service.force_status(job.id, JobStatus.CANCELLED, "admin1", "   ")

    def test_forced_completion_settles(self, service, ledger, accepted_job):
        service.force_status(accepted_job.id, JobStatus.COMPLETED, "admin1", "Confirmed")
        assert ledger.get_balance("e1") == Decimal("21.00")

    def test_forced_settled_after_completion_does_not_double_settle(
        self, service, ledger, accepted_job, walk_to
    ):
        walk_to(accepted_job.id, "e1", JobStatus.COMPLETED)
        # COMPLETED is terminal, so SETTLED is unreachable even for admin
        with pytest.raises(InvalidTransitionError):
            service.force_status(accepted_job.id, JobStatus.SETTLED, "admin1", "Paid")
        assert len(ledger.get_transactions("e1")) == 2

    def test_forced_settled_from_in_progress(self, service, ledger, accepted_job, walk_to):
        walk_to(accepted_job.id, "e1", JobStatus.IN_PROGRESS)

        job = service.force_status(accepted_job.id, JobStatus.SETTLED, "admin1", "Paid in cash")

        assert job.status == JobStatus.SETTLED
        assert job.completed_at is not None
        assert len(ledger.get_transactions("e1")) == 2

    def test_backwards_rejected(self, service, accepted_job):
        with pytest.raises(InvalidTransitionError):
            service.force_status(accepted_job.id, JobStatus.BROADCAST, "admin1", "Reopen")

    def test_override_is_audited(self, service, storage, clock, accepted_job):
        service.force_status(
            accepted_job.id, JobStatus.CANCELLED, "admin1", " No-show ", ip_address="10.0.0.7"
        )

        (entry,) = storage.list_audit(entity_type="job", entity_id=accepted_job.id)
        assert entry.admin_id == "admin1"
        assert entry.action == "job_status_cancelled"
        assert entry.reason == "No-show"
        assert entry.details == {"previous_status": "ACCEPTED", "new_status": "CANCELLED"}
        assert entry.ip_address == "10.0.0.7"
        assert entry.created_at == clock.now

    def test_rejected_override_is_not_audited(self, service, storage, accepted_job):
        with pytest.raises(InvalidTransitionError):
            service.force_status(accepted_job.id, JobStatus.BROADCAST, "admin1", "Reopen")
        with pytest.raises(ValueError):
            service.force_status(accepted_job.id, JobStatus.CANCELLED, "admin1", "")
        assert storage.list_audit() == []

    def test_regular_transitions_are_not_audited(self, service, storage, accepted_job, walk_to):
        walk_to(accepted_job.id, "e1", JobStatus.COMPLETED)
        assert storage.list_audit() == []


class TestAddOns:
    """Tests for add-on requests and approval."""

    def test_request_is_pending_until_approved(self, service, accepted_job):
        job = service.request_add_ons(
            accepted_job.id, "e1", [{"name": "Replace breaker", "price": "20"}]
        )

        assert len(job.pending_add_ons) == 1
        assert job.total_price == Decimal("30")
        assert job.version == accepted_job.version + 1
        assert job.timeline == accepted_job.timeline

    def test_approve_all(self, service, accepted_job):
        service.request_add_ons(
            accepted_job.id, "e1", [{"name": "A", "price": 10}, {"name": "B", "price": 5}]
        )

        job = service.approve_add_ons(accepted_job.id, "c1")

        assert job.pending_add_ons == ()
        assert [a.name for a in job.add_ons] == ["A", "B"]
        assert job.total_price == Decimal("45")

    def test_approve_subset(self, service, accepted_job):
        pending = service.request_add_ons(
            accepted_job.id, "e1", [{"name": "A", "price": 10}, {"name": "B", "price": 5}]
        ).pending_add_ons

        job = service.approve_add_ons(accepted_job.id, "c1", [pending[1].id])

        assert [a.name for a in job.add_ons] == ["B"]
        assert [a.name for a in job.pending_add_ons] == ["A"]

    def test_reject(self, service, accepted_job):
        service.request_add_ons(accepted_job.id, "e1", [{"name": "A", "price": 10}])

        job = service.reject_add_ons(accepted_job.id, "c1")

        assert job.pending_add_ons == ()
        assert job.add_ons == ()

    def test_unknown_id(self, service, accepted_job):
        service.request_add_ons(accepted_job.id, "e1", [{"name": "A", "price": 10}])
        with pytest.raises(ValueError, match="Unknown add-on"):
            service.approve_add_ons(accepted_job.id, "c1", ["missing"])

    def test_only_customer_approves(self, service, accepted_job):
        service.request_add_ons(accepted_job.id, "e1", [{"name": "A", "price": 10}])
        with pytest.raises(UnauthorizedError):
            service.approve_add_ons(accepted_job.id, "c2")

    def test_nothing_pending(self, service, accepted_job):
        with pytest.raises(InvalidTransitionError):
            service.approve_add_ons(accepted_job.id, "c1")

    def test_only_assigned_electrician_requests(self, service, accepted_job):
        with pytest.raises(UnauthorizedError):
            service.request_add_ons(accepted_job.id, "e2", [{"name": "A", "price": 10}])

    def test_not_on_broadcast_job(self, service):
        job = service.create_job("c1", 30)
        with pytest.raises(InvalidTransitionError):
            service.request_add_ons(job.id, "e1", [{"name": "A", "price": 10}])

    def test_empty_request(self, service, accepted_job):
        with pytest.raises(ValueError):
            service.request_add_ons(accepted_job.id, "e1", [])

    def test_approved_add_ons_are_settled(self, service, ledger, accepted_job, walk_to):
        service.request_add_ons(accepted_job.id, "e1", [{"name": "Breaker", "price": 20}])
        service.approve_add_ons(accepted_job.id, "c1")

        walk_to(accepted_job.id, "e1", JobStatus.COMPLETED)

        # 50 total: 42.50 earning, 7.50 commission
        assert ledger.get_balance("e1") == Decimal("35.00")


def test_separate_services_share_storage(clock):
    """Two service instances over one storage see each other's writes."""
    storage = InMemoryStorage()
    a = JobService(storage, clock=clock)
    b = JobService(storage, clock=clock)

    job = a.create_job("c1", 30)
    b.accept_broadcast(job.id, "e1")

    with pytest.raises(InvalidTransitionError):
        a.accept_broadcast(job.id, "e2")
