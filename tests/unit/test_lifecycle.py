"""Service-level tests for fault creation, closure and history ordering."""
from datetime import datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import photo_bytes
from railfaults import lifecycle
from railfaults.errors import AccessDeniedError, InternalError, NotFoundError, ValidationError
from railfaults.images import RawImage
from railfaults.models import Fault, FaultStatus, RoleEnum
from railfaults.schemas import FaultCreate, FaultUpdate
from railfaults.scoping import UNRESTRICTED, FaultView, ScopeFilter


@pytest.mark.parametrize(
    "fault_date, fault_time, expected",
    [
        ("12.03.2024", "14:05", datetime(2024, 3, 12, 14, 5)),
        ("12.03.2024", None, datetime(2024, 3, 12)),
        ("12.03.2024", "late", datetime(2024, 3, 12)),
        (None, "14:05", lifecycle.EPOCH),
        ("  ", None, lifecycle.EPOCH),
        ("2024-03-12", None, lifecycle.EPOCH),
    ],
)
def test_closure_timestamp(fault_date, fault_time, expected):
    assert lifecycle.closure_timestamp(Fault(fault_date=fault_date, fault_time=fault_time)) == expected


@pytest.fixture()
def reporter(make_user):
    return make_user("watchman", RoleEnum.CTC_WATCHMAN)


@pytest.fixture()
def chiefdom(make_chiefdom):
    return make_chiefdom("Sivas")


def _open_fault(db_session, chiefdom, reporter, title="Track circuit"):
    fault, _ = lifecycle.create_fault(
        db_session,
        FaultCreate(title=title, description="Occupied with no train", chiefdom_id=chiefdom.id),
        reporter,
        UNRESTRICTED,
    )
    return fault


class TestCreate:
    def test_reporter_defaults_to_caller(self, db_session, chiefdom, reporter):
        fault = _open_fault(db_session, chiefdom, reporter)

        assert fault.reported_by_id == reporter.id
        assert fault.status is FaultStatus.OPEN
        assert fault.images == []

    def test_blank_title_rejected(self, db_session, chiefdom, reporter):
        with pytest.raises(ValidationError):
            lifecycle.create_fault(
                db_session, FaultCreate(title="   ", description="d", chiefdom_id=chiefdom.id), reporter, UNRESTRICTED
            )

    def test_unknown_chiefdom(self, db_session, reporter):
        with pytest.raises(NotFoundError):
            lifecycle.create_fault(
                db_session, FaultCreate(title="t", description="d", chiefdom_id=404), reporter, UNRESTRICTED
            )

    def test_outside_scope_is_denied(self, db_session, chiefdom, make_chiefdom, reporter):
        other = make_chiefdom("Kars")
        with pytest.raises(AccessDeniedError):
            lifecycle.create_fault(
                db_session,
                FaultCreate(title="t", description="d", chiefdom_id=other.id),
                reporter,
                ScopeFilter(chiefdom_id=chiefdom.id),
            )
        assert db_session.query(Fault).count() == 0

    def test_only_managers_report_for_someone_else(self, db_session, chiefdom, reporter, make_user):
        worker = make_user("worker", RoleEnum.WORKER, chiefdom_id=chiefdom.id)
        engineer = make_user("engineer", RoleEnum.ENGINEER)
        on_behalf = FaultCreate(
            title="t", description="d", chiefdom_id=chiefdom.id, reported_by_id=reporter.id
        )

        with pytest.raises(AccessDeniedError):
            lifecycle.create_fault(db_session, on_behalf, worker, ScopeFilter(chiefdom_id=chiefdom.id))

        fault, _ = lifecycle.create_fault(db_session, on_behalf, engineer, UNRESTRICTED)
        assert fault.reported_by_id == reporter.id

    def test_images_are_attached_in_the_creating_commit(self, db_session, chiefdom, reporter, upload_dir):
        upload = RawImage(filename="site.jpg", content_type="image/jpeg", data=photo_bytes((640, 480)))

        fault, batch = lifecycle.create_fault(
            db_session,
            FaultCreate(title="t", description="d", chiefdom_id=chiefdom.id),
            reporter,
            UNRESTRICTED,
            [upload],
        )

        assert batch.ingested_count == 1
        assert [image.url for image in fault.images] == [batch.results[0].url]
        assert all(path.exists() for path in batch.stored_paths)


class TestTransitionToClosed:
    def test_missing_solution_leaves_fault_untouched(self, db_session, chiefdom, reporter):
        fault = _open_fault(db_session, chiefdom, reporter)

        with pytest.raises(ValidationError, match="solution"):
            lifecycle.transition_to_closed(
                db_session, fault.id, FaultUpdate(status=FaultStatus.CLOSED, fault_date="01.02.2024"), [], UNRESTRICTED
            )

        db_session.expire_all()
        stored = db_session.get(Fault, fault.id)
        assert stored.status is FaultStatus.OPEN
        assert stored.fault_date is None

    def test_closure_merges_fields(self, db_session, chiefdom, reporter):
        fault = _open_fault(db_session, chiefdom, reporter)
        changes = FaultUpdate(
            status=FaultStatus.CLOSED,
            fault_date="01.02.2024",
            fault_time="09:30",
            solution="Replaced relay",
            working_personnel="",
        )

        closed, batch = lifecycle.transition_to_closed(db_session, fault.id, changes, [], UNRESTRICTED)

        assert closed.status is FaultStatus.CLOSED
        assert closed.solution == "Replaced relay"
        assert closed.working_personnel is None
        assert batch.results == []

    def test_failed_commit_removes_stored_images(self, db_session, chiefdom, reporter, upload_dir):
        fault = _open_fault(db_session, chiefdom, reporter)
        upload_dir.mkdir(parents=True, exist_ok=True)
        before = set(upload_dir.iterdir())
        changes = FaultUpdate(status=FaultStatus.CLOSED, fault_date="01.02.2024", solution="Fixed")
        upload = RawImage(filename="site.jpg", content_type="image/jpeg", data=photo_bytes((640, 480)))

        with patch.object(db_session, "commit", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(InternalError):
                lifecycle.transition_to_closed(db_session, fault.id, changes, [upload], UNRESTRICTED)

        assert set(upload_dir.iterdir()) == before
        db_session.expire_all()
        assert db_session.get(Fault, fault.id).status is FaultStatus.OPEN


class TestHistoryOrdering:
    def _closed(self, db_session, chiefdom, reporter, title, fault_date, fault_time=None):
        fault = _open_fault(db_session, chiefdom, reporter, title=title)
        fault.status = FaultStatus.CLOSED
        fault.fault_date = fault_date
        fault.fault_time = fault_time
        db_session.commit()
        return fault

    def test_history_is_newest_closure_first_and_stable(self, db_session, chiefdom, reporter):
        self._closed(db_session, chiefdom, reporter, "undated", None)
        self._closed(db_session, chiefdom, reporter, "tie-older", "05.05.2024", "10:00")
        self._closed(db_session, chiefdom, reporter, "early", "01.01.2024", "23:59")
        self._closed(db_session, chiefdom, reporter, "tie-newer", "05.05.2024", "10:00")
        self._closed(db_session, chiefdom, reporter, "latest", "05.05.2024", "18:45")

        history = lifecycle.list_faults(db_session, UNRESTRICTED, view=FaultView.HISTORY)

        assert [fault.title for fault in history] == ["latest", "tie-newer", "tie-older", "early", "undated"]

    def test_history_pagination_applies_after_sorting(self, db_session, chiefdom, reporter):
        self._closed(db_session, chiefdom, reporter, "old", "01.01.2023")
        self._closed(db_session, chiefdom, reporter, "new", "01.01.2025")
        self._closed(db_session, chiefdom, reporter, "mid", "01.01.2024")

        page = lifecycle.list_faults(db_session, UNRESTRICTED, view=FaultView.HISTORY, limit=1, offset=1)

        assert [fault.title for fault in page] == ["mid"]


class TestViewStatus:
    def test_views_imply_status_but_default_lists_everything(self, db_session, chiefdom, reporter):
        open_fault = _open_fault(db_session, chiefdom, reporter, title="open")
        closed_fault = _open_fault(db_session, chiefdom, reporter, title="closed")
        closed_fault.status = FaultStatus.CLOSED
        closed_fault.fault_date = "03.03.2024"
        db_session.commit()

        active = lifecycle.list_faults(db_session, UNRESTRICTED, view=FaultView.ACTIVE)
        history = lifecycle.list_faults(db_session, UNRESTRICTED, view=FaultView.HISTORY)
        everything = lifecycle.list_faults(db_session, UNRESTRICTED)

        assert [fault.id for fault in active] == [open_fault.id]
        assert [fault.id for fault in history] == [closed_fault.id]
        assert [fault.id for fault in everything] == [closed_fault.id, open_fault.id]
