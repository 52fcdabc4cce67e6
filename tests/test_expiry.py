from datetime import timedelta
from decimal import Decimal

from assessment_engine.jobs.expiry import auto_submit_expired, should_force_submit
from assessment_engine.models.answer import Answer
from assessment_engine.models.assignment import Assignment
from assessment_engine.models.enrollment import Enrollment
from assessment_engine.models.enums import AssignmentStatus, QuestionType
from tests.factories import (
    NOW,
    add_boolean_question,
    add_question,
    choice_ids,
    enroll,
    make_assignment,
    make_class_subject,
    make_homework,
    make_supervised,
)


def _reload(db, assignment_id):
    db.expire_all()
    return db.get(Assignment, assignment_id)


def test_personal_time_used_up(db):
    class_subject = make_class_subject(db)
    enrollment = enroll(db, class_subject)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(hours=3), duration_minutes=60)
    assignment = make_assignment(db, exam, enrollment, started_at=NOW - timedelta(hours=2))

    result = auto_submit_expired(db, NOW)

    assert result.submitted == 1
    stored = _reload(db, assignment.id)
    assert stored.status == AssignmentStatus.GRADED
    assert stored.forced_submission is True
    assert stored.security_violation == "time_expired"


def test_session_window_closes_before_personal_deadline(db):
    # session closed 30 minutes ago, personal deadline is 30 minutes away
    class_subject = make_class_subject(db)
    enrollment = enroll(db, class_subject)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(minutes=90), duration_minutes=60)
    assignment = make_assignment(db, exam, enrollment, started_at=NOW - timedelta(minutes=30))

    assert should_force_submit(exam, assignment, NOW) is True

    result = auto_submit_expired(db, NOW)

    assert result.submitted == 1
    assert _reload(db, assignment.id).forced_submission is True


def test_running_assignments_are_left_alone(db):
    class_subject = make_class_subject(db)
    enrollment = enroll(db, class_subject)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(minutes=10), duration_minutes=60)
    assignment = make_assignment(db, exam, enrollment, started_at=NOW - timedelta(minutes=9))

    result = auto_submit_expired(db, NOW)

    assert result.submitted == 0
    assert _reload(db, assignment.id).status == AssignmentStatus.IN_PROGRESS


def test_only_started_unsubmitted_supervised_work_is_considered(db):
    class_subject = make_class_subject(db)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(hours=3), duration_minutes=60)
    hidden = make_supervised(
        db, class_subject, scheduled_at=NOW - timedelta(hours=3), duration_minutes=60, is_published=False
    )
    homework = make_homework(db, class_subject, due_date=NOW - timedelta(days=1))

    make_assignment(db, exam, enroll(db, class_subject))
    make_assignment(
        db,
        exam,
        enroll(db, class_subject),
        started_at=NOW - timedelta(hours=3),
        submitted_at=NOW - timedelta(hours=2, minutes=30),
    )
    make_assignment(db, hidden, enroll(db, class_subject), started_at=NOW - timedelta(hours=3))
    make_assignment(db, homework, enroll(db, class_subject), started_at=NOW - timedelta(days=2))

    result = auto_submit_expired(db, NOW)

    assert result.submitted == 0
    assert result.skipped == 0


def test_force_submission_scores_saved_answers(db):
    class_subject = make_class_subject(db)
    enrollment = enroll(db, class_subject)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(hours=2), duration_minutes=60)
    right = add_boolean_question(db, exam, correct=True, points="2")
    wrong = add_boolean_question(db, exam, correct=True, points="3")
    essay = add_question(db, exam, QuestionType.TEXT, points="5")
    assignment = make_assignment(db, exam, enrollment, started_at=NOW - timedelta(hours=2))
    db.add_all(
        [
            Answer(assignment_id=assignment.id, question_id=right.id, choice_id=choice_ids(right)["true"]),
            Answer(assignment_id=assignment.id, question_id=wrong.id, choice_id=choice_ids(wrong)["false"]),
            Answer(assignment_id=assignment.id, question_id=essay.id, answer_text="unfinished"),
        ]
    )
    db.commit()

    auto_submit_expired(db, NOW)

    stored = _reload(db, assignment.id)
    assert stored.status == AssignmentStatus.SUBMITTED
    assert stored.auto_score == Decimal("2")
    assert stored.score is None


def test_dry_run_matches_real_run(db):
    class_subject = make_class_subject(db)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(hours=2), duration_minutes=60)
    ids = [
        make_assignment(db, exam, enroll(db, class_subject), started_at=NOW - timedelta(hours=2)).id
        for _ in range(2)
    ]

    preview = auto_submit_expired(db, NOW, dry_run=True)

    assert preview.dry_run is True
    assert preview.submitted == 2
    assert all(_reload(db, i).submitted_at is None for i in ids)

    real = auto_submit_expired(db, NOW)

    assert real.submitted == preview.submitted
    assert all(_reload(db, i).submitted_at is not None for i in ids)


def test_second_run_is_a_no_op(db):
    class_subject = make_class_subject(db)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(hours=2), duration_minutes=60)
    make_assignment(db, exam, enroll(db, class_subject), started_at=NOW - timedelta(hours=2))

    assert auto_submit_expired(db, NOW).submitted == 1
    assert auto_submit_expired(db, NOW + timedelta(minutes=1)).submitted == 0


def test_assignment_with_missing_enrollment_is_skipped(db):
    class_subject = make_class_subject(db)
    exam = make_supervised(db, class_subject, scheduled_at=NOW - timedelta(hours=2), duration_minutes=60)
    orphan = make_assignment(db, exam, enroll(db, class_subject), started_at=NOW - timedelta(hours=2))
    healthy = make_assignment(db, exam, enroll(db, class_subject), started_at=NOW - timedelta(hours=2))
    # SQLite does not enforce the foreign key here
    db.query(Enrollment).filter(Enrollment.id == orphan.enrollment_id).delete()
    db.commit()

    result = auto_submit_expired(db, NOW)

    assert result.skipped == 1
    assert result.submitted == 1
    assert _reload(db, orphan.id).submitted_at is None
    assert _reload(db, healthy.id).submitted_at is not None
