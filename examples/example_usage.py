"""Example: drive the ledger through the service layer (no Flask).

Controllers stay thin; the attendance rules live in the services.
"""

import importlib
from datetime import datetime

from config import get_settings_module

from src.class_attendance.class_attendance.container import build_container
from src.class_attendance.class_attendance.core.enums import AttendanceStatus, MarkOrigin, Role, SessionStatus


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    ledger = container.ledger
    now = datetime.now()

    teacher_id = container.user_service.create_account(
        current_role=Role.ADMIN, full_name="Example Teacher", role=Role.TEACHER
    )
    student_id = container.user_service.create_account(
        current_role=Role.ADMIN,
        full_name="Example Student",
        role=Role.STUDENT,
        student_number=f"EX-{now:%Y%m%d%H%M%S}",
    )
    class_id = container.class_service.create_class(
        current_role=Role.TEACHER,
        user_id=teacher_id,
        name="Algebra",
        course="Mathematics",
        section="A",
        year=str(now.year),
    )
    container.roster_service.enroll(
        current_role=Role.TEACHER, user_id=teacher_id, class_id=class_id, student_id=student_id
    )

    session = ledger.open(
        class_id=class_id,
        teacher_id=teacher_id,
        name="Morning lecture",
        session_date=now.date(),
        start_time=now.time().replace(microsecond=0),
    )
    result = ledger.mark_attendance(
        session_id=session.session_id,
        student_id=student_id,
        status=AttendanceStatus.PRESENT,
        origin=MarkOrigin.TEACHER,
    )
    print(result.rejection or result.counts)
    print(ledger.close(session.session_id, SessionStatus.COMPLETED))


if __name__ == "__main__":
    main()
