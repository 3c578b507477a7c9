"""Student management API."""
from flask import Blueprint, request
from flask_jwt_extended import get_current_user, jwt_required
from sqlalchemy import or_

from attendance_app import limiter
from attendance_app.models.user import User, UserRole
from attendance_app.services.attendance_service import AttendanceService
from attendance_app.services.qr_service import QRService
from attendance_app.services.report_service import ReportService
from attendance_app.services.student_service import StudentService
from attendance_app.utils.decorators import admin_required, own_student_resource, student_required
from attendance_app.utils.exceptions import ForbiddenError, NotFoundError, ValidationError
from attendance_app.utils.helpers import (
    get_json_body, get_pagination_args, pagination_meta, parse_date_range_args, success_response
)

students_bp = Blueprint('students', __name__)


def _get_student(student_id) -> User:
    student = User.query.filter_by(id=student_id, role=UserRole.STUDENT).first()
    if not student:
        raise NotFoundError('Student not found')
    return student


def _check_doctor_access(student):
    user = get_current_user()
    if user.is_doctor() and student.group_id not in user.assigned_group_ids():
        raise ForbiddenError('Can only access students in your assigned groups')


@students_bp.route('/my-qr-code', methods=['GET'])
@jwt_required()
@student_required
def get_my_qr_code():
    """The caller's QR payload and image; stale payloads are replaced first."""
    student = get_current_user()
    qr = QRService.generate_student_qr_code(student)

    return success_response(data={
        'studentNumber': student.student_number,
        'name': student.name,
        **qr
    })


@students_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def get_students():
    """List students; doctors only see their assigned groups."""
    user = get_current_user()
    if user.is_student():
        raise ForbiddenError('Insufficient permissions')

    page, limit = get_pagination_args()
    query = User.query.filter(User.role == UserRole.STUDENT)

    search = request.args.get('search', '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            User.name.ilike(pattern), User.email.ilike(pattern), User.student_number.ilike(pattern)
        ))
    for arg, column in (('department', User.department_id), ('group', User.group_id), ('year', User.year)):
        if request.args.get(arg):
            query = query.filter(column == request.args.get(arg, type=int))

    if user.is_doctor():
        query = query.filter(User.group_id.in_(list(user.assigned_group_ids())))

    pagination = query.order_by(User.name).paginate(page=page, per_page=limit, error_out=False)

    return success_response(
        data=[student.to_dict() for student in pagination.items],
        pagination=pagination_meta(pagination)
    )


@students_bp.route('/<int:student_id>', methods=['GET'])
@jwt_required()
@own_student_resource
def get_student(student_id):
    student = _get_student(student_id)
    _check_doctor_access(student)
    return success_response(data=student.to_dict())


@students_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@admin_required
def create_student():
    student = StudentService.create_student(get_json_body())
    return success_response(data=student.to_dict(), message='Student created successfully', status_code=201)


@students_bp.route('/bulk', methods=['POST'])
@jwt_required()
@admin_required
@limiter.limit("5 per hour")
def create_students_bulk():
    """Create students from an uploaded CSV or Excel sheet."""
    if 'file' not in request.files:
        raise ValidationError("No file uploaded")

    file = request.files['file']
    if file.filename == '':
        raise ValidationError("No file selected")

    df = StudentService.read_upload(file)
    defaults = {key: request.form[key] for key in ('department', 'group', 'year') if request.form.get(key)}
    results = StudentService.create_students_bulk(df, defaults)

    return success_response(
        data={
            'total': len(results),
            'successful': len([r for r in results if r['success']]),
            'failed': len([r for r in results if not r['success']]),
            'results': results
        },
        message="Bulk import completed"
    )


@students_bp.route('/<int:student_id>', methods=['PUT'])
@jwt_required()
@admin_required
def update_student(student_id):
    student = StudentService.update_student(_get_student(student_id), get_json_body())
    return success_response(data=student.to_dict(), message='Student updated successfully')


@students_bp.route('/<int:student_id>', methods=['DELETE'])
@jwt_required()
@admin_required
def delete_student(student_id):
    """Delete a student together with its attendance records."""
    removed = StudentService.delete_student(_get_student(student_id))
    return success_response(
        message='Student deleted successfully',
        data={'deletedAttendanceRecords': removed}
    )


@students_bp.route('/<int:student_id>/qr-code', methods=['GET'])
@jwt_required()
@own_student_resource
def get_student_qr_code(student_id):
    student = _get_student(student_id)
    _check_doctor_access(student)
    qr = QRService.generate_student_qr_code(student)

    return success_response(data={
        'studentNumber': student.student_number,
        'name': student.name,
        **qr
    })


@students_bp.route('/<int:student_id>/regenerate-qr', methods=['POST'])
@jwt_required()
@admin_required
def regenerate_qr_code(student_id):
    """Mint a new payload, invalidating the old QR image."""
    student = _get_student(student_id)
    data = StudentService.regenerate_qr(student)

    return success_response(
        data={'qrCodeData': data, 'qrCodeImage': QRService.generate_qr_code_base64(data)},
        message='QR code regenerated successfully'
    )


@students_bp.route('/<int:student_id>/attendance', methods=['GET'])
@jwt_required()
@own_student_resource
def get_student_attendance(student_id):
    student = _get_student(student_id)
    _check_doctor_access(student)

    page, limit = get_pagination_args()
    filters = {key: request.args.get(key) for key in ('groupId', 'status', 'startDate', 'endDate')}
    filters['studentId'] = student.id

    pagination = AttendanceService.list_records(get_current_user(), filters, page, limit)

    return success_response(
        data=[record.to_dict() for record in pagination.items],
        pagination=pagination_meta(pagination)
    )


@students_bp.route('/<int:student_id>/profile', methods=['GET'])
@jwt_required()
@own_student_resource
def get_student_profile(student_id):
    """Student details with an attendance summary."""
    student = _get_student(student_id)
    _check_doctor_access(student)
    start, end = parse_date_range_args()

    report = ReportService.student_report(student.id, start, end)

    return success_response(data={
        'student': report['student'],
        'statistics': report['statistics'],
        'recentAttendance': report['attendanceRecords'][:10]
    })
