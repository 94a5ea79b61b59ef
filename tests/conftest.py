from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, time
from typing import Optional

import pytest

from src.class_attendance.class_attendance.classes.model import SchoolClass
from src.class_attendance.class_attendance.core.enums import (
    EnrollmentStatus,
    ExcuseStatus,
    Role,
    SessionStatus,
)
from src.class_attendance.class_attendance.core.exceptions import StoreUnavailable
from src.class_attendance.class_attendance.excuses.model import ExcuseRequest
from src.class_attendance.class_attendance.roster.model import Enrollment
from src.class_attendance.class_attendance.sessions.model import (
    AppliedMarks,
    AttendanceRecord,
    AttendanceSession,
    SessionCounts,
    tally_counts,
)
from src.class_attendance.class_attendance.sessions.service import AttendanceSessionLedger
from src.class_attendance.class_attendance.users.model import User

CLASS_ID = 1
OTHER_CLASS_ID = 2
TEACHER_ID = 100
OTHER_TEACHER_ID = 200
ADMIN_ID = 900


class InMemoryRoster:
    def __init__(self):
        self._rows: dict[tuple[int, int], Enrollment] = {}
        self._lock = threading.Lock()

    def add(self, class_id: int, student_id: int, status: EnrollmentStatus = EnrollmentStatus.ENROLLED) -> None:
        self._rows[(class_id, student_id)] = Enrollment(class_id=class_id, student_id=student_id, status=status)

    def enrolled_student_ids(self, class_id: int):
        with self._lock:
            return frozenset(
                e.student_id for (c, _), e in self._rows.items() if c == class_id and e.is_enrolled
            )

    def get(self, *, class_id: int, student_id: int) -> Optional[Enrollment]:
        return self._rows.get((class_id, student_id))

    def create_request(self, *, class_id: int, student_id: int) -> bool:
        with self._lock:
            if (class_id, student_id) in self._rows:
                return False
            self.add(class_id, student_id, EnrollmentStatus.PENDING)
            return True

    def decide(self, *, class_id: int, student_id: int, status: EnrollmentStatus) -> bool:
        with self._lock:
            e = self._rows.get((class_id, student_id))
            if not e or e.status != EnrollmentStatus.PENDING:
                return False
            self._rows[(class_id, student_id)] = replace(e, status=status, decided_at=datetime(2026, 3, 2, 9, 0))
            return True

    def enroll(self, *, class_id: int, student_id: int) -> bool:
        with self._lock:
            e = self._rows.get((class_id, student_id))
            if e and e.is_enrolled:
                return False
            self.add(class_id, student_id)
            return True

    def remove(self, *, class_id: int, student_id: int) -> bool:
        with self._lock:
            return self._rows.pop((class_id, student_id), None) is not None

    def list_members(self, *, class_id: int, status: Optional[EnrollmentStatus] = None):
        return [
            e
            for (c, _), e in sorted(self._rows.items())
            if c == class_id and (status is None or e.status == status)
        ]


class InMemoryClasses:
    def __init__(self):
        self._rows: dict[int, SchoolClass] = {}
        self._id = 0

    def add(self, class_id: int, teacher_id: int, **fields) -> SchoolClass:
        values = dict(
            class_name=f"Class {class_id}", class_code=f"CLS-{class_id}", course="Mathematics", section="A", year="2026"
        )
        values.update(fields)
        self._rows[class_id] = SchoolClass(class_id=class_id, teacher_id=teacher_id, **values)
        self._id = max(self._id, class_id)
        return self._rows[class_id]

    def get_by_id(self, class_id: int) -> Optional[SchoolClass]:
        return self._rows.get(int(class_id))

    def code_exists(self, class_code: str) -> bool:
        return any(c.class_code == class_code for c in self._rows.values())

    def create(self, *, teacher_id, class_name, class_code, course, section, year, subject=None, description=None):
        if self.code_exists(class_code):
            return None
        self._id += 1
        self.add(
            self._id, teacher_id, class_name=class_name, class_code=class_code, course=course,
            section=section, year=year, subject=subject, description=description,
        )
        return self._id

    def update(self, *, class_id, **fields) -> bool:
        c = self._rows.get(int(class_id))
        if not c:
            return False
        self._rows[c.class_id] = replace(c, **fields)
        return True

    def set_active(self, *, class_id: int, is_active: bool) -> bool:
        c = self._rows.get(int(class_id))
        if not c:
            return False
        self._rows[c.class_id] = replace(c, is_active=is_active)
        return True

    def list_classes(self, *, teacher_id=None, include_inactive=False):
        return [
            c
            for _, c in sorted(self._rows.items())
            if (teacher_id is None or c.teacher_id == teacher_id) and (include_inactive or c.is_active)
        ]


class InMemoryUsers:
    def __init__(self):
        self._rows: dict[int, User] = {}
        self._id = 1000

    def add(self, user: User) -> User:
        self._rows[user.user_id] = user
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._rows.get(int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self._rows.values() if u.email == email), None)

    def get_by_student_number(self, student_number: str) -> Optional[User]:
        return next((u for u in self._rows.values() if u.student_number == student_number), None)

    def create_user(self, *, full_name, role, email, student_number) -> int:
        self._id += 1
        self.add(User(user_id=self._id, full_name=full_name, role=role, email=email, student_number=student_number))
        return self._id

    def update_user(self, *, user_id, full_name, email, student_number) -> bool:
        u = self._rows.get(int(user_id))
        if not u:
            return False
        self._rows[u.user_id] = replace(u, full_name=full_name, email=email, student_number=student_number)
        return True

    def set_active(self, *, user_id: int, is_active: bool) -> bool:
        u = self._rows.get(int(user_id))
        if not u:
            return False
        self._rows[u.user_id] = replace(u, is_active=is_active)
        return True

    def list_users(self, *, role=None, include_inactive=False):
        return [
            u
            for _, u in sorted(self._rows.items())
            if (role is None or u.role == role) and (include_inactive or u.is_active)
        ]


class InMemoryRecords:
    def __init__(self):
        self._rows: dict[tuple[int, int], AttendanceRecord] = {}
        self._id = 0
        self._lock = threading.Lock()

    def _store(self, *, session_id, student_id, status, marked_at, origin, notes, record_id=None) -> AttendanceRecord:
        if record_id is None:
            self._id += 1
            record_id = self._id
        rec = AttendanceRecord(
            record_id=record_id,
            session_id=session_id,
            student_id=student_id,
            status=status,
            marked_at=marked_at,
            origin=origin,
            notes=notes,
        )
        self._rows[(session_id, student_id)] = rec
        return rec

    def get(self, *, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        return self._rows.get((session_id, student_id))

    def write(self, session_id: int, mark, marked_at) -> Optional[AttendanceRecord]:
        """Insert-once for write-once marks, overwrite otherwise."""

        with self._lock:
            existing = self._rows.get((session_id, mark.student_id))
            if existing and mark.write_once:
                return None
            return self._store(
                session_id=session_id, student_id=mark.student_id, status=mark.status,
                marked_at=marked_at, origin=mark.origin, notes=mark.notes,
                record_id=existing.record_id if existing else None,
            )

    def snapshot(self):
        with self._lock:
            return dict(self._rows), self._id

    def restore(self, snapshot) -> None:
        with self._lock:
            rows, last_id = snapshot
            self._rows = dict(rows)
            self._id = last_id

    def list_for_session(self, session_id: int):
        with self._lock:
            return sorted(
                (r for (s, _), r in self._rows.items() if s == session_id),
                key=lambda r: r.student_id,
            )

    def count_for(self, session_id: int, student_id: int) -> int:
        return sum(1 for r in self._rows.values() if r.session_id == session_id and r.student_id == student_id)

    def delete_session(self, session_id: int) -> None:
        with self._lock:
            for key in [k for k in self._rows if k[0] == session_id]:
                del self._rows[key]


class InMemorySessions:
    """Session store; one lock spans each unit of work like the session row lock does."""

    def __init__(self, records: InMemoryRecords, roster: InMemoryRoster):
        self._records = records
        self._roster = roster
        self._rows: dict[int, AttendanceSession] = {}
        self._id = 0
        self._lock = threading.Lock()
        self.fail_next_recomputes = 0
        self.recompute_calls = 0

    def create(self, *, class_id, teacher_id, session_name, session_date, start_time, method,
               check_in_token, allow_late, late_minutes_allowed, total_students, notes=None) -> int:
        with self._lock:
            self._id += 1
            self._rows[self._id] = AttendanceSession(
                session_id=self._id,
                class_id=class_id,
                teacher_id=teacher_id,
                session_name=session_name,
                session_date=session_date,
                start_time=start_time,
                status=SessionStatus.ACTIVE,
                method=method,
                check_in_token=check_in_token,
                allow_late=allow_late,
                late_minutes_allowed=late_minutes_allowed,
                counts=SessionCounts(total_students=total_students),
                notes=notes,
            )
            return self._id

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        return self._rows.get(session_id)

    def close(self, *, session_id, status, end_time) -> bool:
        with self._lock:
            s = self._rows.get(session_id)
            if not s or s.status != SessionStatus.ACTIVE:
                return False
            self._rows[session_id] = replace(s, status=status, end_time=end_time or s.end_time)
            return True

    def _recompute(self, s: AttendanceSession) -> SessionCounts:
        counts = tally_counts(
            self._records.list_for_session(s.session_id),
            self._roster.enrolled_student_ids(s.class_id),
        )
        self._rows[s.session_id] = replace(s, counts=counts)
        return counts

    def _maybe_fail(self) -> None:
        self.recompute_calls += 1
        if self.fail_next_recomputes > 0:
            self.fail_next_recomputes -= 1
            raise StoreUnavailable("connection reset")

    def recompute_counts(self, session_id: int) -> Optional[SessionCounts]:
        with self._lock:
            self._maybe_fail()
            s = self._rows.get(session_id)
            if not s:
                return None
            return self._recompute(s)

    def apply_marks(self, *, session_id, marks, marked_at, require_active=True) -> Optional[AppliedMarks]:
        with self._lock:
            s = self._rows.get(session_id)
            if not s:
                return None
            if require_active and not s.is_active:
                return AppliedMarks(session_status=s.status)

            before = self._records.snapshot()
            written = tuple(self._records.write(session_id, m, marked_at) for m in marks)
            try:
                # Fails after the writes, the way a deadlock on the counts UPDATE would.
                self._maybe_fail()
            except StoreUnavailable:
                self._records.restore(before)
                raise
            return AppliedMarks(session_status=s.status, records=written, counts=self._recompute(s))

    def list_sessions(self, *, class_id=None, teacher_id=None, status=None, limit=200):
        rows = [
            s
            for s in self._rows.values()
            if (class_id is None or s.class_id == class_id)
            and (teacher_id is None or s.teacher_id == teacher_id)
            and (status is None or s.status == status)
        ]
        return rows[:limit]

    def delete(self, session_id: int) -> bool:
        with self._lock:
            if self._rows.pop(session_id, None) is None:
                return False
        self._records.delete_session(session_id)
        return True


class InMemoryExcuses:
    def __init__(self, sessions: InMemorySessions):
        self._sessions = sessions
        self._rows: dict[int, ExcuseRequest] = {}
        self._id = 0

    def create(self, *, student_id, session_id, reason):
        if any(r.student_id == student_id and r.session_id == session_id for r in self._rows.values()):
            return None
        self._id += 1
        self._rows[self._id] = ExcuseRequest(
            request_id=self._id,
            student_id=student_id,
            session_id=session_id,
            reason=reason,
            status=ExcuseStatus.PENDING,
            submitted_at=datetime(2026, 3, 2, 10, 0),
        )
        return self._id

    def get(self, request_id):
        return self._rows.get(int(request_id))

    def decide(self, *, request_id, status, reviewed_by, review_notes=None):
        req = self._rows.get(int(request_id))
        if not req or req.status != ExcuseStatus.PENDING:
            return False
        self._rows[int(request_id)] = replace(
            req,
            status=status,
            reviewed_by=reviewed_by,
            reviewed_at=datetime(2026, 3, 2, 11, 0),
            review_notes=review_notes,
        )
        return True

    def reopen(self, request_id):
        req = self._rows.get(int(request_id))
        if not req or req.status != ExcuseStatus.APPROVED:
            return False
        self._rows[int(request_id)] = replace(
            req, status=ExcuseStatus.PENDING, reviewed_by=None, reviewed_at=None, review_notes=None
        )
        return True

    def list_requests(self, *, status=None, student_id=None, class_id=None, limit=200):
        out = []
        for r in self._rows.values():
            if status is not None and r.status != status:
                continue
            if student_id is not None and r.student_id != student_id:
                continue
            if class_id is not None and self._sessions.get_by_id(r.session_id).class_id != class_id:
                continue
            out.append(r)
        return out[:limit]


class FakeReports:
    def __init__(self, rows=None):
        self._rows = rows if rows is not None else []
        self.last_args = None

    def get_report_rows(self, *, start_date, end_date, class_id=None, student_id=None, teacher_id=None, status=None):
        self.last_args = {
            "start_date": start_date,
            "end_date": end_date,
            "class_id": class_id,
            "student_id": student_id,
            "teacher_id": teacher_id,
            "status": status,
        }
        return [r for r in self._rows if status is None or r.status == status]


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 8, 30, 0)


@pytest.fixture
def clock(fixed_now) -> FixedClock:
    return FixedClock(fixed_now)


@pytest.fixture
def classes() -> InMemoryClasses:
    c = InMemoryClasses()
    c.add(CLASS_ID, TEACHER_ID, class_name="Algebra", class_code="MAT-A-2026")
    c.add(OTHER_CLASS_ID, OTHER_TEACHER_ID, class_name="Biology", class_code="BIO-B-2026", course="Biology", section="B")
    return c


@pytest.fixture
def users() -> InMemoryUsers:
    u = InMemoryUsers()
    u.add(User(user_id=ADMIN_ID, full_name="Admin", role=Role.ADMIN))
    u.add(User(user_id=TEACHER_ID, full_name="Teacher One", role=Role.TEACHER, email="one@school.test"))
    u.add(User(user_id=OTHER_TEACHER_ID, full_name="Teacher Two", role=Role.TEACHER))
    for student_id in range(1, 7):
        u.add(
            User(user_id=student_id, full_name=f"Student {student_id}", role=Role.STUDENT, student_number=f"S-{student_id:03d}")
        )
    return u


@pytest.fixture
def roster() -> InMemoryRoster:
    r = InMemoryRoster()
    for student_id in (1, 2, 3):
        r.add(CLASS_ID, student_id)
    r.add(CLASS_ID, 4, EnrollmentStatus.PENDING)
    r.add(CLASS_ID, 5, EnrollmentStatus.REJECTED)
    r.add(OTHER_CLASS_ID, 6)
    return r


@pytest.fixture
def records() -> InMemoryRecords:
    return InMemoryRecords()


@pytest.fixture
def sessions(records, roster) -> InMemorySessions:
    return InMemorySessions(records, roster)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def ledger(sessions, records, roster, clock, sleeps) -> AttendanceSessionLedger:
    return AttendanceSessionLedger(
        sessions,
        records,
        roster,
        retry_backoff_seconds=0.1,
        clock=clock,
        sleep=sleeps.append,
    )


@pytest.fixture
def open_session(ledger):
    def _open(**overrides) -> AttendanceSession:
        kwargs = dict(
            class_id=CLASS_ID,
            teacher_id=TEACHER_ID,
            name="Algebra - week 1",
            session_date=date(2026, 3, 2),
            start_time=time(8, 0),
        )
        kwargs.update(overrides)
        return ledger.open(**kwargs)

    return _open


@pytest.fixture
def excuses(sessions) -> InMemoryExcuses:
    return InMemoryExcuses(sessions)


@pytest.fixture
def report_rows() -> list:
    return []


@pytest.fixture
def reports(report_rows) -> FakeReports:
    return FakeReports(report_rows)
