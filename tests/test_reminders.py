from datetime import timedelta

from assessment_engine.db.session import SessionLocal
from assessment_engine.jobs.reminders import send_reminders
from assessment_engine.models.assessment import Assessment
from assessment_engine.models.enums import EnrollmentStatus
from assessment_engine.models.notification import Notification
from assessment_engine.services.notifications import DatabaseNotificationChannel
from tests.factories import (
    NOW,
    FakeChannel,
    enroll,
    make_assignment,
    make_class_subject,
    make_homework,
    make_student,
    make_supervised,
)


def _reminder_sent_at(db, assessment_id):
    db.expire_all()
    return db.get(Assessment, assessment_id).reminder_sent_at


def test_reminds_every_active_student_once(db, channel):
    class_subject = make_class_subject(db)
    students = [enroll(db, class_subject).student_id for _ in range(3)]
    enroll(db, class_subject, status=EnrollmentStatus.WITHDRAWN)
    exam = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=10))

    result = send_reminders(db, channel, NOW)

    assert result.assessments == 1
    assert result.sent == 3
    assert result.failed == 0
    assert channel.recipients == set(students)
    assert _reminder_sent_at(db, exam.id) is not None

    rerun = send_reminders(db, channel, NOW + timedelta(minutes=1))

    assert rerun.assessments == 0
    assert rerun.sent == 0
    assert len(channel.sent) == 3


def test_reminder_payload(db, channel):
    class_subject = make_class_subject(db)
    enroll(db, class_subject)
    exam = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=15), title="Final exam")

    send_reminders(db, channel, NOW)

    [(_, payload)] = channel.sent
    assert payload["type"] == "assessment_starting_soon"
    assert payload["assessment_id"] == exam.id
    assert payload["assessment_title"] == "Final exam"
    assert payload["scheduled_at"].startswith("2026-03-02T09:15:00")
    assert payload["url"].endswith(f"/student/assessments/{exam.id}")


def test_assessments_outside_the_window_are_not_reminded(db, channel):
    class_subject = make_class_subject(db)
    enroll(db, class_subject)
    later = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=16))
    running = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(minutes=1))

    result = send_reminders(db, channel, NOW)

    assert result.assessments == 0
    assert channel.sent == []
    assert _reminder_sent_at(db, later.id) is None
    assert _reminder_sent_at(db, running.id) is None


def test_unpublished_and_homework_are_not_reminded(db, channel):
    class_subject = make_class_subject(db)
    enroll(db, class_subject)
    make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=5), is_published=False)
    make_homework(db, class_subject, due_date=NOW + timedelta(minutes=5))

    assert send_reminders(db, channel, NOW).assessments == 0
    assert channel.sent == []


def test_custom_lookahead(db, channel):
    class_subject = make_class_subject(db)
    enroll(db, class_subject)
    make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=45))

    assert send_reminders(db, channel, NOW).assessments == 0
    assert send_reminders(db, channel, NOW, lookahead_minutes=60).sent == 1


def test_students_who_already_started_are_still_reminded_once(db, channel):
    class_subject = make_class_subject(db)
    enrollment = enroll(db, class_subject)
    exam = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=5))
    make_assignment(db, exam, enrollment)

    assert send_reminders(db, channel, NOW).sent == 1


def test_empty_class_still_marks_reminder_sent(db, channel):
    exam = make_supervised(db, make_class_subject(db), scheduled_at=NOW + timedelta(minutes=5))

    result = send_reminders(db, channel, NOW)

    assert result.assessments == 1
    assert result.sent == 0
    assert _reminder_sent_at(db, exam.id) is not None


def test_failed_delivery_does_not_stop_the_loop(db):
    class_subject = make_class_subject(db)
    unlucky = make_student(db)
    enroll(db, class_subject)
    enroll(db, class_subject, student=unlucky)
    enroll(db, class_subject)
    exam = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=5))
    channel = FakeChannel(fail_for={unlucky.id})

    result = send_reminders(db, channel, NOW)

    assert result.sent == 2
    assert result.failed == 1
    assert unlucky.id not in channel.recipients
    # a failed send is not retried on the next run
    assert _reminder_sent_at(db, exam.id) is not None
    assert send_reminders(db, channel, NOW).assessments == 0


def test_database_channel_stores_notifications(db):
    class_subject = make_class_subject(db)
    student_id = enroll(db, class_subject).student_id
    exam = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=5))

    result = send_reminders(db, DatabaseNotificationChannel(SessionLocal), NOW)

    assert result.sent == 1
    db.expire_all()
    [notification] = db.query(Notification).all()
    assert notification.user_id == student_id
    assert notification.type == "assessment_starting_soon"
    assert notification.data["assessment_id"] == exam.id
    assert notification.read_at is None


def test_assessment_with_missing_class_subject_is_skipped(db, channel):
    class_subject = make_class_subject(db)
    enroll(db, class_subject)
    healthy = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=5))
    orphan = make_supervised(db, class_subject, scheduled_at=NOW + timedelta(minutes=6), title="Orphan")
    # SQLite does not enforce the foreign key here
    db.query(Assessment).filter(Assessment.id == orphan.id).update({"class_subject_id": 9999})
    db.commit()

    result = send_reminders(db, channel, NOW)

    assert result.assessments == 1
    assert result.skipped == 1
    assert result.sent == 1
    assert _reminder_sent_at(db, healthy.id) is not None
    assert _reminder_sent_at(db, orphan.id) is not None
