"""Attendance recording rules.

Every write goes through :meth:`AttendanceService.record`, which applies the
checks in a fixed order and stops at the first failure:

1. the student exists and is active;
2. the student belongs to the group;
3. a doctor caller is assigned to the group (admins skip this);
4. no record exists for the student and group on the same local calendar day;
5. the record is stored with the caller as ``doctor``.

Step 4 is backed by a partial unique index, so a concurrent duplicate that
slips past the lookup is rejected at commit and reported the same way.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from attendance_app import db
from attendance_app.models.attendance import AttendanceRecord, AttendanceStatus, RecordSource
from attendance_app.models.user import User, UserRole
from attendance_app.services.qr_service import QRService
from attendance_app.services.report_service import ReportService
from attendance_app.utils.exceptions import (
    APIError, DuplicateAttendanceError, ForbiddenError, InactiveAccountError, InvalidQRCodeError,
    NotAssignedError, NotFoundError, NotInGroupError, ValidationError
)
from attendance_app.utils.helpers import day_window, parse_date_range

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500


def parse_status(value, field: str = 'status') -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(value)
    except ValueError:
        raise ValidationError(
            "Validation failed",
            errors=[{'field': field, 'message': 'Status must be present, absent, late, or excused'}]
        )


def parse_lecture_details(details) -> Dict:
    """Keep the known lecture keys, checking their types."""
    if not details:
        return {}
    if not isinstance(details, dict):
        raise ValidationError("Validation failed",
                              errors=[{'field': 'lectureDetails', 'message': 'lectureDetails must be an object'}])

    cleaned = {}
    if details.get('subject') is not None:
        cleaned['subject'] = str(details['subject']).strip()[:200]
    for key in ('lectureNumber', 'duration'):
        if details.get(key) is None:
            continue
        value = details[key]
        if isinstance(value, bool) or not isinstance(value, (int, float, str)) or not str(value).isdigit():
            raise ValidationError(
                "Validation failed",
                errors=[{'field': f'lectureDetails.{key}', 'message': f'{key} must be a positive integer'}]
            )
        cleaned[key] = int(value)
    return cleaned


def _check_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = str(notes).strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(
            "Validation failed",
            errors=[{'field': 'notes', 'message': f'Notes cannot exceed {MAX_NOTES_LENGTH} characters'}]
        )
    return notes


def manual_source(caller: User) -> RecordSource:
    return RecordSource.ADMIN if caller.is_admin() else RecordSource.MANUAL


class AttendanceService:

    @staticmethod
    def check_assignment(caller: User, group_id: int) -> None:
        if caller.is_doctor() and not caller.is_assigned_to(group_id):
            raise NotAssignedError()

    @staticmethod
    def find_for_day(student_id: int, group_id: int, lecture_date: datetime) -> Optional[AttendanceRecord]:
        start_of_day, end_of_day = day_window(lecture_date)
        return AttendanceRecord.query.filter(
            AttendanceRecord.student_id == student_id,
            AttendanceRecord.group_id == group_id,
            AttendanceRecord.lecture_date >= start_of_day,
            AttendanceRecord.lecture_date <= end_of_day
        ).first()

    @staticmethod
    def record(student_id: int, group_id: int, caller: User, lecture_date: datetime = None,
               status=AttendanceStatus.PRESENT, source: RecordSource = None,
               notes: str = None, lecture_details: Dict = None) -> AttendanceRecord:
        """Store one attendance record after all checks pass."""
        status = parse_status(status)
        notes = _check_notes(notes)
        lecture_details = parse_lecture_details(lecture_details)
        lecture_date = lecture_date or datetime.now()
        source = source or manual_source(caller)

        student = User.query.filter_by(id=student_id, role=UserRole.STUDENT).first()
        if not student:
            raise NotFoundError("Student not found")
        if not student.is_active:
            raise InactiveAccountError()

        if student.group_id != group_id:
            raise NotInGroupError()

        AttendanceService.check_assignment(caller, group_id)

        existing = AttendanceService.find_for_day(student.id, group_id, lecture_date)
        if existing:
            logger.info('Duplicate attendance rejected: student %s group %s on %s',
                        student.id, group_id, lecture_date.date().isoformat())
            raise DuplicateAttendanceError(data=existing.to_dict())

        record = AttendanceRecord(
            student_id=student.id,
            group_id=group_id,
            doctor_id=caller.id,
            lecture_date=lecture_date,
            lecture_day=lecture_date.date(),
            status=status,
            recorded_by=source,
            notes=notes
        )
        record.apply_lecture_details(lecture_details)
        db.session.add(record)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.info('Duplicate attendance rejected by unique index: student %s group %s',
                        student.id, group_id)
            raise DuplicateAttendanceError()

        logger.info('Attendance %s recorded for student %s in group %s by %s (%s)',
                    status.value, student.id, group_id, caller.id, source.value)
        return record

    @staticmethod
    def scan(qr_data, group_id: int, caller: User, lecture_details: Dict = None,
             now: datetime = None) -> AttendanceRecord:
        """Mark the student encoded in a scanned QR payload as present now."""
        payload = QRService.parse_qr_data(qr_data)
        QRService.validate_qr_code(payload)
        student_id = QRService.extract_student_id(payload)

        student = db.session.get(User, student_id)
        if student and student.is_student() and payload.get('studentNumber') != student.student_number:
            raise InvalidQRCodeError("QR code does not match the student record")

        return AttendanceService.record(
            student_id=student_id,
            group_id=group_id,
            caller=caller,
            lecture_date=now or datetime.now(),
            status=AttendanceStatus.PRESENT,
            source=RecordSource.QR_SCAN,
            lecture_details=lecture_details
        )

    @staticmethod
    def bulk_record(group_id: int, items: List[Dict], caller: User, lecture_date: datetime = None,
                    lecture_details: Dict = None) -> Dict[str, List]:
        """Record a whole list; each item succeeds or fails on its own."""
        AttendanceService.check_assignment(caller, group_id)
        lecture_date = lecture_date or datetime.now()

        successful, errors = [], []
        for item in items:
            student_id = item.get('studentId') if isinstance(item, dict) else None
            try:
                if student_id is None:
                    raise ValidationError("studentId is required")
                record = AttendanceService.record(
                    student_id=int(student_id),
                    group_id=group_id,
                    caller=caller,
                    lecture_date=lecture_date,
                    status=item.get('status', AttendanceStatus.PRESENT.value),
                    source=manual_source(caller),
                    notes=item.get('notes'),
                    lecture_details=lecture_details
                )
                successful.append({'studentId': record.student_id, 'attendanceId': record.id, 'status': 'success'})
            except APIError as e:
                errors.append({'studentId': student_id, 'message': e.message})
            except (TypeError, ValueError):
                errors.append({'studentId': student_id, 'message': 'studentId must be a valid id'})

        logger.info('Bulk attendance for group %s: %d recorded, %d failed',
                    group_id, len(successful), len(errors))
        return {'successful': successful, 'errors': errors}

    @staticmethod
    def _owned_record(record_id: int, caller: User, action: str) -> AttendanceRecord:
        record = db.session.get(AttendanceRecord, record_id)
        if not record:
            raise NotFoundError("Attendance record not found")
        if caller.is_doctor() and record.doctor_id != caller.id:
            raise ForbiddenError(f"Can only {action} your own attendance records")
        return record

    @staticmethod
    def update(record_id: int, caller: User, data: Dict) -> AttendanceRecord:
        record = AttendanceService._owned_record(record_id, caller, 'update')

        if data.get('status'):
            record.status = parse_status(data['status'])
        if 'notes' in data:
            record.notes = _check_notes(data['notes'])
        if data.get('lectureDetails'):
            record.apply_lecture_details(parse_lecture_details(data['lectureDetails']))

        try:
            db.session.commit()
        except IntegrityError:
            # absent -> present can collide with another record for the same day
            db.session.rollback()
            raise DuplicateAttendanceError()
        return record

    @staticmethod
    def delete(record_id: int, caller: User) -> None:
        record = AttendanceService._owned_record(record_id, caller, 'delete')
        db.session.delete(record)
        db.session.commit()
        logger.info('Attendance record %s deleted by %s', record_id, caller.id)

    @staticmethod
    def scoped_query(caller: User, filters: Dict = None):
        """Records visible to ``caller`` narrowed by the optional filters."""
        filters = filters or {}
        query = AttendanceRecord.query

        for key, column in (('groupId', AttendanceRecord.group_id),
                            ('studentId', AttendanceRecord.student_id),
                            ('doctorId', AttendanceRecord.doctor_id)):
            if filters.get(key) not in (None, ''):
                try:
                    query = query.filter(column == int(filters[key]))
                except (TypeError, ValueError):
                    raise ValidationError(f"Invalid {key}")

        if filters.get('status'):
            query = query.filter(AttendanceRecord.status == parse_status(filters['status']))

        start, end = parse_date_range(filters.get('startDate'), filters.get('endDate'))
        query = ReportService.apply_date_range(query, start, end)

        if caller.is_doctor():
            query = query.filter(AttendanceRecord.group_id.in_(list(caller.assigned_group_ids())))
        elif caller.is_student():
            query = query.filter(AttendanceRecord.student_id == caller.id)

        return query

    @staticmethod
    def list_records(caller: User, filters: Dict = None, page: int = 1, limit: int = 20):
        query = AttendanceService.scoped_query(caller, filters)
        return query.order_by(
            AttendanceRecord.lecture_date.desc(), AttendanceRecord.id.desc()
        ).paginate(page=page, per_page=limit, error_out=False)

    @staticmethod
    def stats(caller: User, filters: Dict = None) -> Dict:
        query = AttendanceService.scoped_query(caller, filters)
        return ReportService.summarize(ReportService.status_counts(query))
