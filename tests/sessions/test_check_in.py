from datetime import datetime

import pytest

from src.class_attendance.class_attendance.core.enums import (
    AttendanceMethod,
    AttendanceStatus,
    CheckInRejection,
    MarkOrigin,
)
from src.class_attendance.class_attendance.core.exceptions import SessionNotActive

TOKEN = "s3cret-token"


@pytest.fixture
def qr_session(open_session):
    def _open(**overrides):
        return open_session(method=AttendanceMethod.QR, check_in_token=TOKEN, **overrides)

    return _open


def test_check_in_before_start_is_present(ledger, qr_session):
    s = qr_session()

    result = ledger.check_in(session_id=s.session_id, student_id=1, token=TOKEN, now=datetime(2026, 3, 2, 7, 55))

    assert result.ok
    assert result.record.status == AttendanceStatus.PRESENT
    assert result.record.origin == MarkOrigin.STUDENT
    assert result.counts.present == 1


def test_check_in_after_start_without_allowance_is_late(ledger, qr_session):
    s = qr_session()

    # falls back to the ledger clock (08:30)
    result = ledger.check_in(session_id=s.session_id, student_id=2, token=TOKEN)

    assert result.record.status == AttendanceStatus.LATE
    assert result.record.notes == "Checked in 30 min after start"
    assert result.counts.late == 1


def test_check_in_inside_allowance_is_present(ledger, qr_session):
    s = qr_session(allow_late=True, late_minutes_allowed=45)

    result = ledger.check_in(session_id=s.session_id, student_id=1, token=TOKEN)

    assert result.record.status == AttendanceStatus.PRESENT


def test_check_in_past_allowance_is_late(ledger, qr_session):
    s = qr_session(allow_late=True, late_minutes_allowed=10)

    result = ledger.check_in(session_id=s.session_id, student_id=1, token=TOKEN)

    assert result.record.status == AttendanceStatus.LATE


def test_second_check_in_is_duplicate(ledger, qr_session):
    s = qr_session()
    ledger.check_in(session_id=s.session_id, student_id=1, token=TOKEN)

    again = ledger.check_in(session_id=s.session_id, student_id=1, token=TOKEN)

    assert again.rejection == CheckInRejection.DUPLICATE_CHECK_IN
    assert ledger.get_session(s.session_id).counts.marked == 1


@pytest.mark.parametrize("token", ["wrong", "", None])
def test_bad_token_is_rejected(ledger, records, qr_session, token):
    s = qr_session()

    result = ledger.check_in(session_id=s.session_id, student_id=1, token=token)

    assert result.rejection == CheckInRejection.INVALID_TOKEN
    assert records.list_for_session(s.session_id) == []


def test_manual_session_refuses_self_check_in(ledger, open_session):
    s = open_session()

    result = ledger.check_in(session_id=s.session_id, student_id=1, token="anything")

    assert result.rejection == CheckInRejection.INVALID_TOKEN


def test_unenrolled_student_cannot_check_in(ledger, qr_session):
    s = qr_session()

    result = ledger.check_in(session_id=s.session_id, student_id=6, token=TOKEN)

    assert result.rejection == CheckInRejection.NOT_ENROLLED


def test_check_in_on_closed_session_raises(ledger, qr_session):
    s = qr_session()
    ledger.close(s.session_id)

    with pytest.raises(SessionNotActive):
        ledger.check_in(session_id=s.session_id, student_id=1, token=TOKEN)
