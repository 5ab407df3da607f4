"""
Tests for the SchedulingService orchestration layer.
"""

import pendulum
import pytest

from interviewslots.adapters.memory_store import (
    InMemoryAvailabilityRepository,
    InMemoryCommitmentRepository,
    InMemoryPersonRepository,
)
from interviewslots.domain.exceptions import (
    InvalidOffsetError,
    RepositoryUnavailableError,
    SlotUnavailableError,
    UnknownPersonError,
)
from interviewslots.domain.matching import DedupPolicy
from interviewslots.domain.models import Commitment, Person, TimeRange
from interviewslots.services.scheduling import SchedulingService

DAY = TimeRange(
    start=pendulum.parse("2020-07-07T00:00:00Z"),
    end=pendulum.parse("2020-07-08T00:00:00Z"),
)
HOUR = "2020-07-07T16:30:00Z"


def _quarters(first_start: str, count: int = 4):
    start = pendulum.parse(first_start)
    return [start.add(minutes=15 * i) for i in range(count)]


def _build_service(**kwargs) -> SchedulingService:
    kwargs.setdefault("commitments", InMemoryCommitmentRepository())
    return SchedulingService(
        availability=InMemoryAvailabilityRepository(),
        people=InMemoryPersonRepository(),
        **kwargs,
    )


class FailingCommitments(InMemoryCommitmentRepository):
    """Refuses every write, like a store whose disk is full."""

    def add(self, commitment):
        raise RepositoryUnavailableError("disk full")


@pytest.fixture
def service():
    service = _build_service()
    service.register_person(
        Person(person_id="alice", company="Acme", job="Engineer", qualified_positions=frozenset({"SWE"}))
    )
    service.register_person(
        Person(person_id="carol", company="Initech", job="Designer", qualified_positions=frozenset({"UX"}))
    )
    service.register_person(Person(person_id="bob"))
    return service


class TestReplaceAvailability:
    """Tests for editing declared availability."""

    def test_stores_one_granule_per_start(self, service):
        stored = service.replace_availability("alice", DAY, reversed(_quarters(HOUR)))

        assert [g.start for g in stored] == _quarters(HOUR)
        assert all(g.when.duration_minutes() == 15 for g in stored)
        assert all(g.granule_id is not None for g in stored)
        assert not any(g.scheduled for g in stored)

    def test_duplicate_starts_are_stored_once(self, service):
        starts = _quarters(HOUR, 2)

        stored = service.replace_availability("alice", DAY, starts + starts)

        assert len(stored) == 2

    def test_replaces_only_inside_window(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))
        next_day = TimeRange.from_start(DAY.end, 24 * 60)
        service.replace_availability("alice", next_day, _quarters("2020-07-08T16:30:00Z"))

        service.replace_availability("alice", DAY, _quarters("2020-07-07T18:00:00Z", 2))

        week = TimeRange.from_start(DAY.start, 7 * 24 * 60)
        starts = [g.start for g in service._availability.list_in_range(week, "alice")]
        assert starts == _quarters("2020-07-07T18:00:00Z", 2) + _quarters("2020-07-08T16:30:00Z")

    def test_rejects_slots_outside_window(self, service):
        with pytest.raises(ValueError, match="outside"):
            service.replace_availability("alice", DAY, [pendulum.parse("2020-07-08T09:00:00Z")])

    def test_granules_under_commitments_are_scheduled(self, service):
        service._commitments.add(
            Commitment(
                when=TimeRange.from_start(pendulum.parse("2020-07-07T17:00:00Z"), 60),
                interviewer_id="alice",
                interviewee_id="bob",
            )
        )

        stored = service.replace_availability("alice", DAY, _quarters(HOUR, 6))

        assert [g.scheduled for g in stored] == [False, False, True, True, True, True]


class TestAvailabilityGrid:
    """Tests for the viewer's grid."""

    def test_grid_flags_declared_and_booked_cells(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("bob", DAY, _quarters(HOUR))
        service.book("bob", pendulum.parse(HOUR))
        service.replace_availability("alice", DAY, _quarters(HOUR) + _quarters("2020-07-07T18:00:00Z", 1))

        (day,) = service.availability_grid("alice", pendulum.parse("2020-07-07T14:00:00Z"), -240, days=1)

        cells = {slot.utc_encoding: slot for slot in day}
        assert cells[HOUR].selected and cells[HOUR].scheduled
        assert cells["2020-07-07T18:00:00Z"].selected
        assert not cells["2020-07-07T18:00:00Z"].scheduled
        assert not cells["2020-07-07T19:00:00Z"].selected

    def test_grid_rejects_invalid_offset(self, service):
        with pytest.raises(InvalidOffsetError):
            service.availability_grid("alice", pendulum.parse(HOUR), 800)

    def test_grid_rejects_zero_days(self, service):
        with pytest.raises(ValueError, match="at least 1"):
            service.availability_grid("alice", pendulum.parse(HOUR), 0, days=0)


class TestSearch:
    """Tests for candidate search through the service."""

    def test_eligibility_for(self, service):
        assert service.eligibility_for(None) is None
        assert service.eligibility_for("") is None

        eligible = service.eligibility_for("SWE")

        assert eligible("alice")
        assert not eligible("carol")
        assert not eligible("nobody")

    def test_search_filters_by_position(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("carol", DAY, _quarters("2020-07-07T18:00:00Z"))
        now = pendulum.parse("2020-07-07T00:00:00Z")

        everyone = service.search("bob", -240, now=now, dedupe=DedupPolicy.BY_INSTANT_AND_OWNER)
        engineers = service.search(
            "bob", -240, now=now, position="SWE", dedupe=DedupPolicy.BY_INSTANT_AND_OWNER
        )

        assert [[s.owner_id for s in day] for day in everyone] == [["alice", "carol"]]
        assert [[s.owner_id for s in day] for day in engineers] == [["alice"]]

    def test_search_window_starts_now(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))

        later = service.search("bob", 0, now=pendulum.parse("2020-07-07T17:00:00Z"))

        assert later == []

    def test_search_rejects_zero_days(self, service):
        with pytest.raises(ValueError, match="at least 1"):
            service.search("bob", 0, now=pendulum.parse(HOUR), days=0)


class TestInterviewers:
    """Tests for looking up who is free at a start time."""

    def test_available_interviewers(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("carol", DAY, _quarters(HOUR, 3))
        service.replace_availability("bob", DAY, _quarters(HOUR))

        people = service.available_interviewers("bob", pendulum.parse(HOUR))

        assert [p.person_id for p in people] == ["alice"]
        assert people[0].company == "Acme"

    def test_unregistered_people_are_skipped(self, service):
        service.replace_availability("zed", DAY, _quarters(HOUR))

        assert service.available_interviewer_ids("bob", pendulum.parse(HOUR)) == ["zed"]
        assert service.available_interviewers("bob", pendulum.parse(HOUR)) == []

    def test_position_filter(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("carol", DAY, _quarters(HOUR))

        ids = service.available_interviewer_ids("bob", pendulum.parse(HOUR), position="UX")

        assert ids == ["carol"]


class TestBook:
    """Tests for booking interviews."""

    def test_book_picks_lowest_id_and_marks_both_parties(self, service):
        service.replace_availability("carol", DAY, _quarters(HOUR))
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("bob", DAY, _quarters(HOUR))

        commitment = service.book("bob", pendulum.parse(HOUR), position="SWE")

        assert commitment.interviewer_id == "alice"
        assert commitment.interviewee_id == "bob"
        assert commitment.position == "SWE"
        assert commitment.when == TimeRange.from_start(pendulum.parse(HOUR), 60)
        assert commitment.commitment_id is not None
        hour = commitment.when
        assert all(g.scheduled for g in service._availability.list_in_range(hour, "alice"))
        assert all(g.scheduled for g in service._availability.list_in_range(hour, "bob"))
        assert not any(g.scheduled for g in service._availability.list_in_range(hour, "carol"))
        assert service.commitments_for("alice") == [commitment]
        assert service.commitments_for("bob") == [commitment]

    def test_injected_chooser(self):
        service = _build_service(choose_interviewer=max)
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("carol", DAY, _quarters(HOUR))

        commitment = service.book("bob", pendulum.parse(HOUR))

        assert commitment.interviewer_id == "carol"

    def test_second_booking_of_same_hour_fails(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.book("bob", pendulum.parse(HOUR))

        with pytest.raises(SlotUnavailableError, match="No interviewer"):
            service.book("dave", pendulum.parse(HOUR))

    def test_requester_already_committed(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("carol", DAY, _quarters(HOUR))
        service.book("bob", pendulum.parse(HOUR))

        with pytest.raises(SlotUnavailableError, match="already booked"):
            service.book("bob", pendulum.parse("2020-07-07T16:45:00Z"))

    def test_booked_hour_disappears_from_search(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR, 8))
        service.replace_availability("carol", DAY, _quarters(HOUR, 8))
        now = pendulum.parse("2020-07-07T00:00:00Z")
        service.book("bob", pendulum.parse("2020-07-07T17:30:00Z"))

        (day,) = service.search("bob", 0, now=now)

        assert [slot.utc_encoding for slot in day] == [HOUR]

    def test_nobody_free(self, service):
        with pytest.raises(SlotUnavailableError):
            service.book("bob", pendulum.parse(HOUR))

    def test_start_is_stored_in_utc(self, service):
        service.replace_availability("alice", DAY, _quarters(HOUR))

        commitment = service.book("bob", pendulum.datetime(2020, 7, 7, 12, 30, tz="America/New_York"))

        assert commitment.when.start == pendulum.parse(HOUR)
        assert commitment.when.start.timezone_name == "UTC"

    def test_failed_write_releases_granules(self):
        service = _build_service(commitments=FailingCommitments())
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("bob", DAY, _quarters(HOUR))

        with pytest.raises(RepositoryUnavailableError, match="disk full"):
            service.book("bob", pendulum.parse(HOUR))

        assert [g.scheduled for g in service._availability.all()] == [False] * 8

    def test_interviewer_withdrawn_after_lookup(self):
        def withdraw_a_quarter(candidates):
            gap = TimeRange.from_start(pendulum.parse("2020-07-07T17:00:00Z"), 15)
            service._availability.delete_in_range("alice", gap)
            return candidates[0]

        service = _build_service(choose_interviewer=withdraw_a_quarter)
        service.replace_availability("alice", DAY, _quarters(HOUR))
        service.replace_availability("bob", DAY, _quarters(HOUR))

        with pytest.raises(SlotUnavailableError, match="not available"):
            service.book("bob", pendulum.parse(HOUR))

        assert service.commitments_for("bob") == []
        assert not any(g.scheduled for g in service._availability.all())


class TestShadow:
    """Tests for joining interviews as a shadow."""

    @pytest.fixture
    def interview(self, service):
        for person_id in ("alice", "bob", "dave", "erin"):
            service.register_person(
                Person(person_id=person_id, qualified_positions=frozenset({"SWE"}), ok_shadow=True)
            )
        service.replace_availability("alice", DAY, _quarters(HOUR))
        return service.book("bob", pendulum.parse(HOUR), position="SWE")

    def test_shadowable_interviews(self, service, interview):
        assert service.shadowable_interviews("dave", DAY) == [interview]
        assert service.shadowable_interviews("dave", DAY, position="SWE") == [interview]
        assert service.shadowable_interviews("dave", DAY, position="UX") == []

    def test_participants_cannot_shadow(self, service, interview):
        assert service.shadowable_interviews("alice", DAY) == []
        assert service.shadowable_interviews("bob", DAY) == []
        with pytest.raises(SlotUnavailableError, match="already takes part"):
            service.join_as_shadow(interview.commitment_id, "bob")

    def test_participant_refusing_a_shadow(self, service, interview):
        service.register_person(Person(person_id="bob"))

        assert service.shadowable_interviews("dave", DAY) == []
        with pytest.raises(SlotUnavailableError, match="does not accept"):
            service.join_as_shadow(interview.commitment_id, "dave")

    def test_own_commitment_overlapping(self, service, interview):
        service._commitments.add(
            Commitment(
                when=TimeRange.from_start(pendulum.parse("2020-07-07T17:00:00Z"), 60),
                interviewer_id="erin",
                interviewee_id="dave",
            )
        )

        assert service.shadowable_interviews("dave", DAY) == []
        with pytest.raises(SlotUnavailableError, match="already booked"):
            service.join_as_shadow(interview.commitment_id, "dave")

    def test_join_as_shadow(self, service, interview):
        service.replace_availability("dave", DAY, _quarters(HOUR))

        joined = service.join_as_shadow(interview.commitment_id, "dave")

        assert joined.shadow_id == "dave"
        assert service.commitments_for("dave") == [joined]
        assert all(g.scheduled for g in service._availability.list_in_range(joined.when, "dave"))
        assert service.shadowable_interviews("erin", DAY) == []

    def test_second_shadow_is_refused(self, service, interview):
        service.join_as_shadow(interview.commitment_id, "dave")

        with pytest.raises(SlotUnavailableError, match="already has a shadow"):
            service.join_as_shadow(interview.commitment_id, "erin")

        assert service.commitments_for("erin") == []

    def test_unknown_interview(self, service, interview):
        with pytest.raises(SlotUnavailableError, match="No interview"):
            service.join_as_shadow(999, "dave")

    def test_search_shadowable_groups_by_day(self, service, interview):
        next_day = TimeRange.from_start(DAY.end, 24 * 60)
        service.replace_availability("alice", next_day, _quarters("2020-07-08T16:30:00Z"))
        later = service.book("bob", pendulum.parse("2020-07-08T16:30:00Z"))

        days = service.search_shadowable("dave", -240, now=pendulum.parse("2020-07-07T00:00:00Z"))

        assert days == [[interview], [later]]

    def test_search_shadowable_rejects_zero_days(self, service):
        with pytest.raises(ValueError, match="at least 1"):
            service.search_shadowable("dave", 0, now=pendulum.parse(HOUR), days=0)


class TestPeople:
    """Tests for person lookups."""

    def test_get_person(self, service):
        assert service.get_person("alice").company == "Acme"

    def test_unknown_person(self, service):
        with pytest.raises(UnknownPersonError):
            service.get_person("nobody")
