"""Department management API."""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import or_

from attendance_app.models.attendance import AttendanceRecord
from attendance_app.models.department import Department
from attendance_app.models.group import Group
from attendance_app.models.user import User, UserRole
from attendance_app.services.report_service import ReportService
from attendance_app.utils.decorators import admin_required
from attendance_app.utils.exceptions import ConflictError, ValidationError
from attendance_app.utils.helpers import get_json_body, get_pagination_args, pagination_meta, success_response
from attendance_app.utils.validators import Validator

departments_bp = Blueprint('departments', __name__)


def _validate(data, partial=False):
    Validator(data) \
        .string('name', min_length=2, max_length=100, required=not partial) \
        .string('code', min_length=2, max_length=10, required=not partial) \
        .string('description', max_length=500) \
        .validate()


def _ensure_unique(name, code, exclude_id=None):
    query = Department.query.filter(or_(Department.name == name, Department.code == code))
    if exclude_id is not None:
        query = query.filter(Department.id != exclude_id)
    if query.first():
        raise ConflictError('Department with this name or code already exists')


@departments_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def get_departments():
    """List departments with optional search."""
    page, limit = get_pagination_args()
    search = request.args.get('search', '').strip()

    query = Department.query
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Department.name.ilike(pattern), Department.code.ilike(pattern)))

    pagination = query.order_by(Department.name).paginate(page=page, per_page=limit, error_out=False)

    return success_response(
        data=[department.to_dict() for department in pagination.items],
        pagination=pagination_meta(pagination)
    )


@departments_bp.route('/<int:department_id>', methods=['GET'])
@jwt_required()
def get_department(department_id):
    department = Department.get_or_404(department_id, 'Department not found')
    return success_response(data=department.to_dict())


@departments_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@admin_required
def create_department():
    """Create a department; codes are stored upper-case."""
    data = get_json_body()
    _validate(data)

    name = data['name'].strip()
    code = data['code'].strip().upper()
    _ensure_unique(name, code)

    department = Department(name=name, code=code, description=data.get('description'))
    department.save()

    return success_response(
        data=department.to_dict(),
        message='Department created successfully',
        status_code=201
    )


@departments_bp.route('/<int:department_id>', methods=['PUT'])
@jwt_required()
@admin_required
def update_department(department_id):
    department = Department.get_or_404(department_id, 'Department not found')
    data = get_json_body()
    _validate(data, partial=True)

    name = data['name'].strip() if data.get('name') else department.name
    code = data['code'].strip().upper() if data.get('code') else department.code
    _ensure_unique(name, code, exclude_id=department.id)

    department.update(name=name, code=code, description=data.get('description', department.description))

    return success_response(data=department.to_dict(), message='Department updated successfully')


@departments_bp.route('/<int:department_id>', methods=['DELETE'])
@jwt_required()
@admin_required
def delete_department(department_id):
    """Delete a department that no longer has groups or doctors."""
    department = Department.get_or_404(department_id, 'Department not found')

    if department.groups.count() > 0:
        raise ValidationError('Cannot delete department that has groups')
    if department.members.filter(User.role == UserRole.DOCTOR).count() > 0:
        raise ValidationError('Cannot delete department that has doctors')

    # Students keep their accounts without a department
    User.query.filter(User.department_id == department.id).update(
        {User.department_id: None}, synchronize_session=False
    )
    department.delete()

    return success_response(message='Department deleted successfully')


@departments_bp.route('/<int:department_id>/stats', methods=['GET'])
@jwt_required()
def get_department_stats(department_id):
    """Group, doctor and student counts plus attendance summary."""
    department = Department.get_or_404(department_id, 'Department not found')

    records = AttendanceRecord.query.join(Group, AttendanceRecord.group_id == Group.id) \
        .filter(Group.department_id == department.id)

    return success_response(data={
        'groups': department.groups.count(),
        'doctors': department.members.filter(User.role == UserRole.DOCTOR).count(),
        'students': department.members.filter(User.role == UserRole.STUDENT).count(),
        'attendance': ReportService.summarize(ReportService.status_counts(records))
    })
