"""Doctor management API."""
from flask import Blueprint, request
from flask_jwt_extended import get_current_user, jwt_required
from sqlalchemy import or_

from attendance_app.models.user import User, UserRole
from attendance_app.services.attendance_service import AttendanceService
from attendance_app.services.doctor_service import DoctorService
from attendance_app.utils.decorators import admin_required, doctor_required, roles_required
from attendance_app.utils.exceptions import NotFoundError
from attendance_app.utils.helpers import get_json_body, get_pagination_args, pagination_meta, success_response

doctors_bp = Blueprint('doctors', __name__)

ATTENDANCE_FILTERS = ('groupId', 'status', 'startDate', 'endDate')


def _get_doctor(doctor_id) -> User:
    doctor = User.query.filter_by(id=doctor_id, role=UserRole.DOCTOR).first()
    if not doctor:
        raise NotFoundError('Doctor not found')
    return doctor


def _doctor_attendance(doctor):
    page, limit = get_pagination_args()
    filters = {key: request.args.get(key) for key in ATTENDANCE_FILTERS}
    filters['doctorId'] = doctor.id

    pagination = AttendanceService.list_records(get_current_user(), filters, page, limit)

    return success_response(
        data=[record.to_dict() for record in pagination.items],
        pagination=pagination_meta(pagination)
    )


@doctors_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
@admin_required
def get_doctors():
    """List doctors with search and department filters."""
    page, limit = get_pagination_args(default_limit=10)
    query = User.query.filter(User.role == UserRole.DOCTOR)

    search = request.args.get('search', '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if request.args.get('department'):
        query = query.filter(User.department_id == request.args.get('department', type=int))

    pagination = query.order_by(User.name).paginate(page=page, per_page=limit, error_out=False)

    return success_response(
        data=[doctor.to_dict() for doctor in pagination.items],
        pagination=pagination_meta(pagination)
    )


@doctors_bp.route('/dashboard', methods=['GET'])
@jwt_required()
@roles_required(UserRole.DOCTOR, message='Doctor access required')
def get_dashboard():
    """Landing-page statistics for the calling doctor."""
    return success_response(data=DoctorService.dashboard(get_current_user()))


@doctors_bp.route('/attendance', methods=['GET'])
@jwt_required()
@roles_required(UserRole.DOCTOR, message='Doctor access required')
def get_my_attendance():
    """Records taken by the calling doctor."""
    return _doctor_attendance(get_current_user())


@doctors_bp.route('/<int:doctor_id>', methods=['GET'])
@jwt_required()
@doctor_required
def get_doctor(doctor_id):
    user = get_current_user()
    if user.is_doctor():
        doctor_id = user.id
    return success_response(data=_get_doctor(doctor_id).to_dict())


@doctors_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@admin_required
def create_doctor():
    doctor = DoctorService.create_doctor(get_json_body())
    return success_response(data=doctor.to_dict(), message='Doctor created successfully', status_code=201)


@doctors_bp.route('/<int:doctor_id>', methods=['PUT'])
@jwt_required()
@admin_required
def update_doctor(doctor_id):
    doctor = DoctorService.update_doctor(_get_doctor(doctor_id), get_json_body())
    return success_response(data=doctor.to_dict(), message='Doctor updated successfully')


@doctors_bp.route('/<int:doctor_id>', methods=['DELETE'])
@jwt_required()
@admin_required
def delete_doctor(doctor_id):
    DoctorService.delete_doctor(_get_doctor(doctor_id))
    return success_response(message='Doctor deleted successfully')


@doctors_bp.route('/<int:doctor_id>/assign-groups', methods=['POST'])
@jwt_required()
@admin_required
def assign_groups(doctor_id):
    """Replace the doctor's assigned groups."""
    data = get_json_body()
    doctor = DoctorService.assign_groups(_get_doctor(doctor_id), data.get('groupIds'))
    return success_response(data=doctor.to_dict(), message='Groups assigned successfully')


@doctors_bp.route('/<int:doctor_id>/attendance', methods=['GET'])
@jwt_required()
@doctor_required
def get_doctor_attendance(doctor_id):
    user = get_current_user()
    if user.is_doctor():
        doctor_id = user.id
    return _doctor_attendance(_get_doctor(doctor_id))
