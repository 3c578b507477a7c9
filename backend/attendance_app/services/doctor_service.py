"""Doctor management service."""
import logging
from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy import func

from attendance_app import db
from attendance_app.models.attendance import AttendanceRecord
from attendance_app.models.user import User, UserRole, DOCTOR_TITLES
from attendance_app.services.account_service import AccountService
from attendance_app.services.report_service import ReportService
from attendance_app.utils.exceptions import ValidationError
from attendance_app.utils.helpers import day_window

logger = logging.getLogger(__name__)


class DoctorService:

    @staticmethod
    def _validate(data: Dict, partial: bool = False) -> None:
        validator = AccountService.validate_account(data, partial=partial)
        validator.list_of('assignedGroups')
        profile = data.get('profile') or {}
        if isinstance(profile, dict) and profile.get('title') and profile['title'] not in DOCTOR_TITLES:
            validator.add('profile.title', f"title must be one of: {', '.join(DOCTOR_TITLES)}")
        validator.validate()

    @staticmethod
    def create_doctor(data: Dict) -> User:
        DoctorService._validate(data)
        AccountService.ensure_email_available(data['email'])

        doctor = User(
            email=AccountService.normalize_email(data['email']),
            name=data['name'].strip(),
            role=UserRole.DOCTOR,
            phone=data.get('phone'),
            profile=AccountService.clean_profile(data.get('profile'))
        )
        doctor.set_password(data['password'])

        department = AccountService.resolve_department(data.get('department'))
        doctor.department_id = department.id if department else None
        doctor.assigned_groups = AccountService.resolve_groups(data.get('assignedGroups'))

        db.session.add(doctor)
        db.session.commit()

        logger.info('Created doctor %s with %d groups', doctor.email, len(doctor.assigned_groups))
        return doctor

    @staticmethod
    def update_doctor(doctor: User, data: Dict) -> User:
        DoctorService._validate(data, partial=True)

        AccountService.apply_common_fields(doctor, data)
        if 'department' in data:
            department = AccountService.resolve_department(data['department'])
            doctor.department_id = department.id if department else None
        if 'assignedGroups' in data:
            doctor.assigned_groups = AccountService.resolve_groups(data['assignedGroups'])

        db.session.commit()
        return doctor

    @staticmethod
    def delete_doctor(doctor: User) -> None:
        if doctor.recorded_attendance.count() > 0:
            raise ValidationError("Cannot delete doctor with existing attendance records")

        email = doctor.email
        doctor.assigned_groups = []
        db.session.delete(doctor)
        db.session.commit()
        logger.info('Deleted doctor %s', email)

    @staticmethod
    def assign_groups(doctor: User, group_ids: List) -> User:
        if not isinstance(group_ids, list):
            raise ValidationError("Validation failed",
                                  errors=[{'field': 'groupIds', 'message': 'groupIds must be a list'}])

        doctor.assigned_groups = AccountService.resolve_groups(group_ids, field='groupIds')
        db.session.commit()

        logger.info('Doctor %s assigned to groups %s', doctor.email, sorted(doctor.assigned_group_ids()))
        return doctor

    @staticmethod
    def dashboard(doctor: User, now: datetime = None) -> Dict:
        """Counts for the doctor's landing page."""
        now = now or datetime.now()
        group_ids = list(doctor.assigned_group_ids())
        start_of_day, end_of_day = day_window(now)

        total_students = User.query.filter(
            User.role == UserRole.STUDENT,
            User.group_id.in_(group_ids)
        ).count() if group_ids else 0

        records = AttendanceRecord.query.filter(AttendanceRecord.doctor_id == doctor.id)

        today_attendance = records.filter(
            AttendanceRecord.lecture_date >= start_of_day,
            AttendanceRecord.lecture_date <= end_of_day
        ).count()

        weekly_stats = ReportService.status_counts(
            records.filter(AttendanceRecord.lecture_date >= now - timedelta(days=7))
        )

        group_rows = db.session.query(
            AttendanceRecord.group_id, AttendanceRecord.status, func.count(AttendanceRecord.id)
        ).filter(
            AttendanceRecord.doctor_id == doctor.id
        ).group_by(AttendanceRecord.group_id, AttendanceRecord.status).all()

        group_stats = ReportService.fold_counts(group_rows)
        groups_by_id = {group.id: group for group in doctor.assigned_groups}

        return {
            'doctor': doctor.to_dict(),
            'statistics': {
                'totalStudents': total_students,
                'todayAttendance': today_attendance,
                'weeklyStats': ReportService.summarize(weekly_stats),
                'groupStats': [
                    dict(group=groups_by_id[group_id].to_summary(), **ReportService.summarize(counts))
                    for group_id, counts in group_stats.items() if group_id in groups_by_id
                ]
            }
        }
