"""Read-only attendance statistics and reports."""
import io
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd
from sqlalchemy import func

from attendance_app import db
from attendance_app.models.attendance import AttendanceRecord, AttendanceStatus
from attendance_app.models.department import Department
from attendance_app.models.group import Group
from attendance_app.models.user import User, UserRole
from attendance_app.utils.exceptions import NotFoundError, ValidationError
from attendance_app.utils.helpers import day_window

logger = logging.getLogger(__name__)

STATUSES = [status.value for status in AttendanceStatus]

EXPORT_COLUMNS = OrderedDict([
    ('lecture_date', 'Lecture Date'),
    ('student_number', 'Student Number'),
    ('student_name', 'Student'),
    ('group_code', 'Group'),
    ('doctor_name', 'Doctor'),
    ('status', 'Status'),
    ('recorded_by', 'Recorded By'),
    ('subject', 'Subject'),
    ('notes', 'Notes'),
])


def _status_key(status) -> str:
    return status.value if isinstance(status, AttendanceStatus) else str(status)


class ReportService:
    """Aggregations over attendance records."""

    @staticmethod
    def calculate_percentage(present: int, total: int) -> float:
        """``present / total * 100`` rounded to two decimals; 0 for an empty total."""
        if not total:
            return 0
        return round(present / total * 100, 2)

    @staticmethod
    def summarize(counts: Dict[str, int]) -> Dict:
        counts = counts or {}
        summary = {status: counts.get(status, 0) for status in STATUSES}
        total = sum(summary.values())
        return {
            'total': total,
            **summary,
            'attendancePercentage': ReportService.calculate_percentage(summary['present'], total)
        }

    @staticmethod
    def status_counts(query) -> Dict[str, int]:
        """Count the records of ``query`` per status."""
        rows = query.order_by(None).with_entities(
            AttendanceRecord.status, func.count(AttendanceRecord.id)
        ).group_by(AttendanceRecord.status).all()
        return {_status_key(status): count for status, count in rows}

    @staticmethod
    def fold_counts(rows: Iterable[Tuple]) -> Dict:
        """``(key, status, count)`` rows into ``{key: {status: count}}``, key order preserved."""
        folded = OrderedDict()
        for key, status, count in rows:
            folded.setdefault(key, {})
            folded[key][_status_key(status)] = folded[key].get(_status_key(status), 0) + count
        return folded

    @staticmethod
    def apply_date_range(query, start: Optional[datetime], end: Optional[datetime]):
        if start and end and start > end:
            raise ValidationError("startDate must be before endDate")
        if start:
            query = query.filter(AttendanceRecord.lecture_date >= start)
        if end:
            query = query.filter(AttendanceRecord.lecture_date <= end)
        return query

    @staticmethod
    def _grouped(query, column):
        """``(column, status, count)`` rows for the records of ``query``."""
        return query.order_by(None).with_entities(
            column, AttendanceRecord.status, func.count(AttendanceRecord.id)
        ).group_by(column, AttendanceRecord.status).order_by(column).all()

    @staticmethod
    def student_report(student_id: int, start=None, end=None) -> Dict:
        student = User.query.filter_by(id=student_id, role=UserRole.STUDENT).first()
        if not student:
            raise NotFoundError("Student not found")

        query = ReportService.apply_date_range(
            AttendanceRecord.query.filter(AttendanceRecord.student_id == student_id), start, end
        )
        records = query.order_by(AttendanceRecord.lecture_date.desc()).all()

        return {
            'student': student.to_dict(),
            'attendanceRecords': [record.to_dict() for record in records],
            'statistics': ReportService.summarize(ReportService.status_counts(query))
        }

    @staticmethod
    def group_report(group_id: int, start=None, end=None) -> Dict:
        group = db.session.get(Group, group_id)
        if not group:
            raise NotFoundError("Group not found")

        query = ReportService.apply_date_range(
            AttendanceRecord.query.filter(AttendanceRecord.group_id == group_id), start, end
        )

        per_student = ReportService.fold_counts(ReportService._grouped(query, AttendanceRecord.student_id))
        students = {s.id: s for s in User.query.filter(User.id.in_(list(per_student))).all()} \
            if per_student else {}

        student_stats = [
            dict(student=students[student_id].to_summary(), **ReportService.summarize(counts))
            for student_id, counts in per_student.items() if student_id in students
        ]
        student_stats.sort(key=lambda item: item['attendancePercentage'], reverse=True)

        daily = ReportService.fold_counts(ReportService._grouped(query, AttendanceRecord.lecture_day))

        return {
            'group': group.to_dict(include_students=True),
            'studentStats': student_stats,
            'overallStats': ReportService.summarize(ReportService.status_counts(query)),
            'dailyStats': [
                dict(date=day.isoformat(), **ReportService.summarize(counts))
                for day, counts in daily.items()
            ]
        }

    @staticmethod
    def doctor_report(doctor_id: int, start=None, end=None) -> Dict:
        doctor = User.query.filter_by(id=doctor_id, role=UserRole.DOCTOR).first()
        if not doctor:
            raise NotFoundError("Doctor not found")

        query = ReportService.apply_date_range(
            AttendanceRecord.query.filter(AttendanceRecord.doctor_id == doctor_id), start, end
        )

        per_group = ReportService.fold_counts(ReportService._grouped(query, AttendanceRecord.group_id))
        groups = {g.id: g for g in Group.query.filter(Group.id.in_(list(per_group))).all()} \
            if per_group else {}

        monthly = OrderedDict()
        for day, counts in ReportService.fold_counts(
                ReportService._grouped(query, AttendanceRecord.lecture_day)).items():
            month = monthly.setdefault(day.strftime('%Y-%m'), {})
            for status, count in counts.items():
                month[status] = month.get(status, 0) + count

        return {
            'doctor': doctor.to_dict(),
            'groupStats': [
                dict(group=groups[group_id].to_summary(), **ReportService.summarize(counts))
                for group_id, counts in per_group.items() if group_id in groups
            ],
            'overallStats': ReportService.summarize(ReportService.status_counts(query)),
            'monthlyStats': [
                dict(month=month, **ReportService.summarize(counts))
                for month, counts in monthly.items()
            ]
        }

    @staticmethod
    def department_report(department_id: int, start=None, end=None) -> Dict:
        department = db.session.get(Department, department_id)
        if not department:
            raise NotFoundError("Department not found")

        query = ReportService.apply_date_range(
            AttendanceRecord.query.join(Group, AttendanceRecord.group_id == Group.id)
            .filter(Group.department_id == department_id),
            start, end
        )

        per_group = ReportService.fold_counts(ReportService._grouped(query, AttendanceRecord.group_id))
        groups = {g.id: g for g in department.groups}
        per_year = ReportService.fold_counts(ReportService._grouped(query, Group.year))

        return {
            'department': department.to_dict(),
            'groupStats': [
                dict(group=groups[group_id].to_summary(), year=groups[group_id].year,
                     **ReportService.summarize(counts))
                for group_id, counts in per_group.items() if group_id in groups
            ],
            'yearStats': [
                dict(year=year, **ReportService.summarize(counts))
                for year, counts in per_year.items()
            ],
            'overallStats': ReportService.summarize(ReportService.status_counts(query))
        }

    @staticmethod
    def overview(now: datetime = None, top: int = 5, recent: int = 10) -> Dict:
        """System-wide counters for the admin dashboard."""
        now = now or datetime.now()
        start_of_day, end_of_day = day_window(now)

        def active(role):
            return User.query.filter_by(role=role, is_active=True).count()

        today = AttendanceRecord.query.filter(
            AttendanceRecord.lecture_date >= start_of_day,
            AttendanceRecord.lecture_date <= end_of_day
        )
        last_week = AttendanceRecord.query.filter(AttendanceRecord.lecture_date >= now - timedelta(days=7))

        per_group = ReportService.fold_counts(
            ReportService._grouped(AttendanceRecord.query, AttendanceRecord.group_id)
        )
        groups = {g.id: g for g in Group.query.filter(Group.id.in_(list(per_group))).all()} \
            if per_group else {}
        top_groups = sorted(
            (dict(group=groups[group_id].to_summary(), **ReportService.summarize(counts))
             for group_id, counts in per_group.items() if group_id in groups),
            key=lambda item: item['attendancePercentage'],
            reverse=True
        )[:top]

        recent_records = AttendanceRecord.query.order_by(
            AttendanceRecord.recorded_at.desc(), AttendanceRecord.id.desc()
        ).limit(recent).all()

        return {
            'counts': {
                'students': active(UserRole.STUDENT),
                'doctors': active(UserRole.DOCTOR),
                'departments': Department.query.count(),
                'groups': Group.query.count()
            },
            'today': ReportService.summarize(ReportService.status_counts(today)),
            'lastWeek': ReportService.summarize(ReportService.status_counts(last_week)),
            'topGroups': top_groups,
            'recentAttendance': [record.to_dict() for record in recent_records]
        }

    @staticmethod
    def export_records(query, file_format: str = 'csv') -> Tuple[io.BytesIO, str, str]:
        """Render records as CSV or Excel; returns (buffer, filename, mimetype)."""
        rows = []
        for record in query.order_by(AttendanceRecord.lecture_date.desc()).all():
            rows.append({
                'lecture_date': record.lecture_date.isoformat(),
                'student_number': record.student.student_number if record.student else None,
                'student_name': record.student.name if record.student else None,
                'group_code': record.group.code if record.group else None,
                'doctor_name': record.doctor.name if record.doctor else None,
                'status': record.status.value,
                'recorded_by': record.recorded_by.value,
                'subject': record.subject,
                'notes': record.notes,
            })

        df = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS)).rename(columns=EXPORT_COLUMNS)
        stamp = datetime.now().strftime('%Y%m%d')
        buffer = io.BytesIO()

        if file_format == 'csv':
            buffer.write(df.to_csv(index=False).encode('utf-8'))
            buffer.seek(0)
            return buffer, f"attendance_{stamp}.csv", 'text/csv'

        if file_format == 'xlsx':
            with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
                df.to_excel(writer, sheet_name='Attendance', index=False)
            buffer.seek(0)
            return (buffer, f"attendance_{stamp}.xlsx",
                    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')

        raise ValidationError("format must be one of: csv, xlsx")
