"""Tests for the job transition table."""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from kahraba.errors import InvalidTransitionError, UnauthorizedError
from kahraba.jobs import (
    ActorRole,
    Job,
    JobStatus,
    TimelineEvent,
    can_transition,
    check_acceptance,
    check_transition,
    next_status,
)
from kahraba.jobs.transitions import is_terminal

FIXED_NOW = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)


def make_job(status=JobStatus.BROADCAST, electrician_id=None, **kwargs):
    return Job(
        id="job-1",
        customer_id="c1",
        base_price=30,
        electrician_id=electrician_id,
        status=status,
        timeline=(TimelineEvent(status, FIXED_NOW, ActorRole.SYSTEM),),
        **kwargs,
    )


class TestLinearPath:
    @pytest.mark.parametrize(
        "current,target",
        [
            (JobStatus.ACCEPTED, JobStatus.EN_ROUTE),
            (JobStatus.EN_ROUTE, JobStatus.ARRIVED),
            (JobStatus.ARRIVED, JobStatus.IN_PROGRESS),
            (JobStatus.IN_PROGRESS, JobStatus.COMPLETED),
        ],
    )
    def test_assigned_electrician_advances(self, current, target):
        job = make_job(current, electrician_id="e1")
        check_transition(job, target, ActorRole.ELECTRICIAN, "e1")
        assert next_status(current) == target

    def test_skipping_a_step_is_invalid(self):
        job = make_job(JobStatus.ACCEPTED, electrician_id="e1")
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.IN_PROGRESS, ActorRole.ELECTRICIAN, "e1")

    def test_moving_backwards_is_invalid(self):
        job = make_job(JobStatus.ARRIVED, electrician_id="e1")
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e1")

    def test_other_electrician_is_unauthorized(self):
        job = make_job(JobStatus.ACCEPTED, electrician_id="e1")
        with pytest.raises(UnauthorizedError):
            check_transition(job, JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e2")

    def test_customer_cannot_advance(self):
        job = make_job(JobStatus.ACCEPTED, electrician_id="e1")
        with pytest.raises(UnauthorizedError):
            check_transition(job, JobStatus.EN_ROUTE, ActorRole.CUSTOMER, "c1")

    def test_illegal_move_reports_invalid_before_unauthorized(self):
        """A stranger asking for an impossible move gets InvalidTransitionError."""
        job = make_job(JobStatus.ACCEPTED, electrician_id="e1")
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.COMPLETED, ActorRole.CUSTOMER, "someone")

    def test_same_status_is_invalid(self):
        job = make_job(JobStatus.EN_ROUTE, electrician_id="e1")
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.EN_ROUTE, ActorRole.ELECTRICIAN, "e1")

    def test_next_status_of_terminal_is_none(self):
        assert next_status(JobStatus.COMPLETED) is None
        assert next_status(JobStatus.BROADCAST) is None


class TestBroadcast:
    def test_customer_publishes_own_job(self):
        job = make_job(JobStatus.CREATED)
        check_transition(job, JobStatus.BROADCAST, ActorRole.CUSTOMER, "c1")

    def test_system_publishes(self):
        job = make_job(JobStatus.CREATED)
        check_transition(job, JobStatus.BROADCAST, ActorRole.SYSTEM)

    def test_other_customer_cannot_publish(self):
        job = make_job(JobStatus.CREATED)
        with pytest.raises(UnauthorizedError):
            check_transition(job, JobStatus.BROADCAST, ActorRole.CUSTOMER, "c2")

    def test_accepted_only_through_offer(self):
        job = make_job(JobStatus.BROADCAST)
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.ACCEPTED, ActorRole.ELECTRICIAN, "e1")

    def test_check_acceptance_open_broadcast(self):
        check_acceptance(make_job(JobStatus.BROADCAST), ActorRole.ELECTRICIAN)

    def test_check_acceptance_rejects_taken_job(self):
        job = make_job(JobStatus.ACCEPTED, electrician_id="e1")
        with pytest.raises(InvalidTransitionError):
            check_acceptance(job, ActorRole.ELECTRICIAN)

    def test_check_acceptance_requires_electrician(self):
        with pytest.raises(UnauthorizedError):
            check_acceptance(make_job(JobStatus.BROADCAST), ActorRole.CUSTOMER)


class TestCancellation:
    @pytest.mark.parametrize(
        "status",
        [JobStatus.CREATED, JobStatus.BROADCAST, JobStatus.ACCEPTED, JobStatus.IN_PROGRESS],
    )
    def test_customer_can_cancel_any_active_status(self, status):
        electrician = "e1" if status not in (JobStatus.CREATED, JobStatus.BROADCAST) else None
        job = make_job(status, electrician_id=electrician)
        check_transition(job, JobStatus.CANCELLED, ActorRole.CUSTOMER, "c1")

    def test_assigned_electrician_can_cancel(self):
        job = make_job(JobStatus.EN_ROUTE, electrician_id="e1")
        check_transition(job, JobStatus.CANCELLED, ActorRole.ELECTRICIAN, "e1")

    def test_unassigned_electrician_cannot_cancel(self):
        job = make_job(JobStatus.BROADCAST)
        with pytest.raises(UnauthorizedError):
            check_transition(job, JobStatus.CANCELLED, ActorRole.ELECTRICIAN, "e9")

    def test_system_cannot_cancel(self):
        job = make_job(JobStatus.BROADCAST)
        with pytest.raises(UnauthorizedError):
            check_transition(job, JobStatus.CANCELLED, ActorRole.SYSTEM)


class TestTerminal:
    @pytest.mark.parametrize(
        "status", [JobStatus.COMPLETED, JobStatus.SETTLED, JobStatus.CANCELLED]
    )
    @pytest.mark.parametrize("role", list(ActorRole))
    def test_terminal_rejects_everyone(self, status, role):
        job = make_job(status, electrician_id="e1")
        for target in JobStatus:
            assert not can_transition(job, target, role, "c1")
            assert not can_transition(job, target, role, "e1")
        assert is_terminal(status)


class TestAdminOverride:
    def test_forward_jump(self):
        job = make_job(JobStatus.ACCEPTED, electrician_id="e1")
        check_transition(job, JobStatus.COMPLETED, ActorRole.ADMIN, "admin")

    def test_cancel_from_anywhere_active(self):
        job = make_job(JobStatus.BROADCAST)
        check_transition(job, JobStatus.CANCELLED, ActorRole.ADMIN, "admin")

    def test_backwards_is_invalid(self):
        job = make_job(JobStatus.ARRIVED, electrician_id="e1")
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.ACCEPTED, ActorRole.ADMIN, "admin")

    def test_created_is_never_a_target(self):
        job = make_job(JobStatus.BROADCAST)
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.CREATED, ActorRole.ADMIN, "admin")

    def test_assigned_status_needs_electrician(self):
        job = make_job(JobStatus.BROADCAST)
        with pytest.raises(InvalidTransitionError):
            check_transition(job, JobStatus.EN_ROUTE, ActorRole.ADMIN, "admin")

    def test_terminal_is_final_for_admin(self):
        job = replace(make_job(JobStatus.CANCELLED), electrician_id=None)
        assert not can_transition(job, JobStatus.COMPLETED, ActorRole.ADMIN, "admin")
