"""Attendance API endpoints: QR scan, manual and bulk recording, listing and stats."""
from flask import Blueprint, request
from flask_jwt_extended import get_current_user, jwt_required

from attendance_app.services.attendance_service import AttendanceService
from attendance_app.utils.decorators import doctor_required
from attendance_app.utils.exceptions import ValidationError
from attendance_app.utils.helpers import (
    get_json_body, get_pagination_args, pagination_meta, parse_datetime, success_response
)
from attendance_app.utils.validators import Validator

attendance_bp = Blueprint('attendance', __name__)

FILTER_KEYS = ('groupId', 'studentId', 'doctorId', 'status', 'startDate', 'endDate')


def _group_id(data) -> int:
    Validator(data).integer('groupId', min_value=1, required=True).validate()
    return int(data['groupId'])


@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')


@attendance_bp.route('/scan', methods=['POST'])
@jwt_required()
@doctor_required
def scan_qr_code():
    """Record the scanned student as present in the group."""
    data = get_json_body()

    if not data.get('qrData') or not data.get('groupId'):
        raise ValidationError('QR data and group ID are required')

    record = AttendanceService.scan(
        data['qrData'],
        _group_id(data),
        get_current_user(),
        lecture_details=data.get('lectureDetails')
    )

    return success_response(
        data=record.to_dict(),
        message='Attendance recorded successfully',
        status_code=201
    )


@attendance_bp.route('/record', methods=['POST'])
@jwt_required()
@doctor_required
def record_attendance():
    """Manually record one student's attendance."""
    data = get_json_body()

    Validator(data) \
        .integer('studentId', min_value=1, required=True) \
        .integer('groupId', min_value=1, required=True) \
        .choice('status', ['present', 'absent', 'late', 'excused'], required=True) \
        .required('lectureDate') \
        .string('notes', max_length=500) \
        .validate()

    record = AttendanceService.record(
        student_id=int(data['studentId']),
        group_id=int(data['groupId']),
        caller=get_current_user(),
        lecture_date=parse_datetime(data['lectureDate'], 'lectureDate'),
        status=data['status'],
        notes=data.get('notes'),
        lecture_details=data.get('lectureDetails')
    )

    return success_response(
        data=record.to_dict(),
        message='Attendance recorded successfully',
        status_code=201
    )


@attendance_bp.route('/bulk-record', methods=['POST'])
@jwt_required()
@doctor_required
def bulk_record_attendance():
    """Record a list of students; failures are reported per item."""
    data = get_json_body()

    attendance_list = data.get('attendanceList')
    if not data.get('groupId') or not isinstance(attendance_list, list):
        raise ValidationError('Group ID and attendance list are required')

    result = AttendanceService.bulk_record(
        _group_id(data),
        attendance_list,
        get_current_user(),
        lecture_date=parse_datetime(data.get('lectureDate'), 'lectureDate'),
        lecture_details=data.get('lectureDetails')
    )

    return success_response(
        data=result,
        message=f"Processed {len(result['successful'])} attendance records"
    )


@attendance_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def get_attendance_records():
    """List attendance records visible to the caller."""
    page, limit = get_pagination_args()
    filters = {key: request.args.get(key) for key in FILTER_KEYS}

    pagination = AttendanceService.list_records(get_current_user(), filters, page, limit)

    return success_response(
        data=[record.to_dict() for record in pagination.items],
        pagination=pagination_meta(pagination)
    )


@attendance_bp.route('/stats', methods=['GET'])
@jwt_required()
def get_attendance_stats():
    """Status counts and attendance percentage for the caller's records."""
    filters = {key: request.args.get(key) for key in FILTER_KEYS}
    return success_response(data=AttendanceService.stats(get_current_user(), filters))


@attendance_bp.route('/<int:record_id>', methods=['PUT'])
@jwt_required()
@doctor_required
def update_attendance(record_id):
    """Update status, notes or lecture details of a record."""
    data = get_json_body()

    Validator(data) \
        .choice('status', ['present', 'absent', 'late', 'excused']) \
        .string('notes', max_length=500) \
        .validate()

    record = AttendanceService.update(record_id, get_current_user(), data)

    return success_response(data=record.to_dict(), message='Attendance updated successfully')


@attendance_bp.route('/<int:record_id>', methods=['DELETE'])
@jwt_required()
@doctor_required
def delete_attendance(record_id):
    """Delete an attendance record."""
    AttendanceService.delete(record_id, get_current_user())
    return success_response(message='Attendance record deleted successfully')
