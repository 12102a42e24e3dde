from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta

import pytest

from scholar_track.core.enums import AttendanceStatus, Standing
from scholar_track.core.exceptions import ValidationError


@pytest.fixture
def seeded(attendance_repo, fixed_today):
    repo = attendance_repo
    repo.enroll("S1", "C1", enrolled_at=datetime(2025, 1, 5))
    repo.enroll("S2", "C1", enrolled_at=datetime(2025, 1, 5))
    # Historical artifact: S3 enrolled twice in the same class.
    repo.enroll("S3", "C1", enrolled_at=datetime(2024, 9, 1))
    repo.enroll("S3", "C1", enrolled_at=datetime(2025, 1, 5))
    repo.enroll("S3", "C2", enrolled_at=datetime(2025, 1, 5))

    for i in range(5):
        day = fixed_today - timedelta(days=i)
        repo.put("S3", "C1", day, AttendanceStatus.PRESENT if i < 3 else AttendanceStatus.ABSENT, photo=f"s3-{i}")
    repo.put("S1", "C1", fixed_today, AttendanceStatus.LATE, photo="s1")
    repo.put("S1", "C1", fixed_today - timedelta(days=1), AttendanceStatus.ABSENT)
    # Outside the 30 day window.
    repo.put("S2", "C1", fixed_today - timedelta(days=45), AttendanceStatus.PRESENT)
    return repo


def test_duplicate_enrollment_yields_single_row(report_service, seeded):
    rows = report_service.students_with_attendance(class_id="C1")

    assert [r.student_id for r in rows] == ["S1", "S2", "S3"]
    s3 = rows[2]
    assert s3.total_sessions == 5
    assert s3.present_count == 3
    assert s3.absent_count == 2
    assert s3.attendance_rate == 60.0
    assert s3.latest_photo == "s3-0"


def test_window_excludes_old_records(report_service, seeded):
    s2 = next(r for r in report_service.students_with_attendance(class_id="C1") if r.student_id == "S2")

    assert s2.total_sessions == 0
    assert s2.status == Standing.NO_DATA


def test_teacher_scope_counts_distinct_students(report_service, seeded):
    t1 = report_service.students_with_attendance(teacher_id="T1")
    t2 = report_service.students_with_attendance(teacher_id="T2")

    assert len(t1) == 3
    assert [r.student_id for r in t2] == ["S3"]
    assert t2[0].total_sessions == 0


def test_search_matches_name_or_roll_number(report_service, seeded):
    assert [r.student_id for r in report_service.students_with_attendance(search="chen")] == ["S3"]
    assert [r.student_id for r in report_service.students_with_attendance(search="r-002")] == ["S2"]


def test_weekly_attendance_is_zero_filled(report_service, seeded, fixed_today):
    days = report_service.weekly_attendance(class_id="C1")

    assert len(days) == 7
    assert days[-1].attendance_date == fixed_today
    today = days[-1]
    assert (today.total_students, today.present_students, today.attendance_rate) == (3, 2, 66.67)
    yesterday = days[-2]
    assert (yesterday.total_students, yesterday.present_students, yesterday.attendance_rate) == (3, 1, 33.33)
    assert (days[0].total_students, days[0].present_students, days[0].attendance_rate) == (3, 0, 0)
    assert days[-1].day == fixed_today.strftime("%a")


def test_weekly_rate_is_over_enrolled_students_not_marked_ones(report_service, attendance_repo, fixed_today):
    for student_id in ("S1", "S2", "S3"):
        attendance_repo.enroll(student_id, "C1", enrolled_at=datetime(2025, 1, 5))
    attendance_repo.put("S1", "C1", fixed_today, AttendanceStatus.PRESENT)

    today = report_service.weekly_attendance(class_id="C1")[-1]

    assert (today.total_students, today.present_students, today.attendance_rate) == (3, 1, 33.33)


def test_weekly_total_ignores_inactive_enrollments(report_service, attendance_repo, fixed_today):
    attendance_repo.enroll("S1", "C1", enrolled_at=datetime(2025, 1, 5))
    attendance_repo.enroll("S2", "C1", enrolled_at=datetime(2025, 1, 5), status="transferred")
    attendance_repo.put("S2", "C1", fixed_today, AttendanceStatus.PRESENT)

    today = report_service.weekly_attendance(class_id="C1")[-1]

    assert (today.total_students, today.present_students) == (1, 0)


def test_students_requiring_attention(report_service, seeded):
    flagged = report_service.students_requiring_attention(class_id="C1")

    assert [(a.student_id, a.weekly_attendance_rate, a.missed_sessions) for a in flagged] == [
        ("S2", 0, 0),
        ("S1", 50.0, 1),
        ("S3", 60.0, 2),
    ]


def test_attention_ties_list_most_missed_first(report_service, attendance_repo, fixed_today):
    for student_id in ("S1", "S2", "S3"):
        attendance_repo.enroll(student_id, "C1", enrolled_at=datetime(2025, 1, 5))
    attendance_repo.put("S1", "C1", fixed_today, AttendanceStatus.ABSENT)
    attendance_repo.put("S2", "C1", fixed_today, AttendanceStatus.ABSENT)
    attendance_repo.put("S2", "C1", fixed_today - timedelta(days=1), AttendanceStatus.ABSENT)

    flagged = report_service.students_requiring_attention(class_id="C1")

    assert [(a.student_id, a.missed_sessions) for a in flagged] == [("S2", 2), ("S1", 1), ("S3", 0)]


def test_attention_list_is_capped(report_service, attendance_repo):
    for student_id in ("S1", "S2", "S3"):
        attendance_repo.enroll(student_id, "C1", enrolled_at=datetime(2025, 1, 5))

    assert len(report_service.students_requiring_attention(class_id="C1", limit=2)) == 2


def test_attention_threshold_override(report_service, seeded):
    assert [a.student_id for a in report_service.students_requiring_attention(class_id="C1", threshold=55)] == ["S2", "S1"]


def test_csv_report_has_one_summary_row_per_student(report_service, seeded, fixed_today):
    text = report_service.attendance_report_csv(start=fixed_today - timedelta(days=1), end=fixed_today, class_id="C1")

    rows = list(csv.DictReader(io.StringIO(text)))
    assert text.splitlines()[0] == (
        "Student Name,Roll Number,Class,Section,Present Days,Late Days,Absent Days,Total Days,Attendance Rate"
    )
    assert [r["Roll Number"] for r in rows] == ["R-001", "R-002", "R-003"]
    s1 = rows[0]
    assert (s1["Present Days"], s1["Late Days"], s1["Absent Days"], s1["Total Days"]) == ("0", "1", "1", "2")
    assert s1["Attendance Rate"] == "50.0%"
    assert rows[1]["Total Days"] == "0"


def test_csv_report_collapses_records_and_enrollments(report_service, seeded, fixed_today):
    text = report_service.attendance_report_csv(start=fixed_today - timedelta(days=9), end=fixed_today, class_id="C1")

    s3_rows = [r for r in csv.DictReader(io.StringIO(text)) if r["Roll Number"] == "R-003"]
    assert len(s3_rows) == 1
    assert (s3_rows[0]["Present Days"], s3_rows[0]["Absent Days"], s3_rows[0]["Total Days"]) == ("3", "2", "5")
    assert s3_rows[0]["Attendance Rate"] == "60.0%"


def test_csv_report_scoped_to_teacher(report_service, seeded, fixed_today):
    text = report_service.attendance_report_csv(start=fixed_today, end=fixed_today, teacher_id="T2")

    assert [r["Student Name"] for r in csv.DictReader(io.StringIO(text))] == ["Chen Li"]


def test_csv_report_rejects_inverted_range(report_service):
    with pytest.raises(ValidationError):
        report_service.attendance_report_csv(start="2025-06-10", end="2025-06-01")


def test_non_positive_days_rejected(report_service):
    with pytest.raises(ValidationError):
        report_service.weekly_attendance(days=0)
