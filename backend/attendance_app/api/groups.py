"""Group management API."""
from flask import Blueprint, request
from flask_jwt_extended import get_current_user, jwt_required
from sqlalchemy import and_, or_

from attendance_app import db
from attendance_app.models.attendance import AttendanceRecord
from attendance_app.models.group import Group
from attendance_app.models.user import User, UserRole
from attendance_app.services.account_service import AccountService, _as_int
from attendance_app.services.report_service import ReportService
from attendance_app.utils.decorators import admin_required, doctor_required
from attendance_app.utils.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from attendance_app.utils.helpers import get_json_body, get_pagination_args, pagination_meta, success_response
from attendance_app.utils.validators import Validator

groups_bp = Blueprint('groups', __name__)


def _validate(data, partial=False):
    Validator(data) \
        .string('name', min_length=1, max_length=100, required=not partial) \
        .string('code', min_length=2, max_length=20, required=not partial) \
        .integer('department', min_value=1, required=not partial) \
        .integer('year', min_value=1, max_value=6, required=not partial) \
        .integer('semester', min_value=1, max_value=2) \
        .integer('capacity', min_value=1, max_value=1000) \
        .integer('doctor', min_value=1) \
        .list_of('selectedStudents') \
        .validate()


def _ensure_unique(name, code, department_id, year, exclude_id=None):
    query = Group.query.filter(or_(
        Group.code == code,
        and_(Group.name == name, Group.department_id == department_id, Group.year == year)
    ))
    if exclude_id is not None:
        query = query.filter(Group.id != exclude_id)
    if query.first():
        raise ConflictError('Group with this code or name already exists in the department')


def _assign_doctor(group, doctor_id):
    """Make ``doctor_id`` the group's doctor; empty clears the assignment."""
    group.assigned_doctors = []
    if doctor_id in (None, ''):
        return
    doctor = User.query.filter_by(id=_as_int(doctor_id, 'doctor'), role=UserRole.DOCTOR).first()
    if not doctor:
        raise ValidationError('Validation failed', errors=[{'field': 'doctor', 'message': 'Doctor not found'}])
    group.assigned_doctors.append(doctor)


def _assign_students(group, student_ids):
    """Replace the group's students with ``student_ids``."""
    ids = [_as_int(student_id, 'selectedStudents') for student_id in student_ids]
    User.query.filter(User.group_id == group.id, User.id.notin_(ids or [0])) \
        .update({User.group_id: None}, synchronize_session=False)
    if ids:
        User.query.filter(User.id.in_(ids), User.role == UserRole.STUDENT) \
            .update({User.group_id: group.id, User.department_id: group.department_id},
                    synchronize_session=False)


def _check_group_access(group_id):
    user = get_current_user()
    if user.is_doctor() and not user.is_assigned_to(group_id):
        raise ForbiddenError('Can only access assigned groups')


@groups_bp.route('/', methods=['GET'], strict_slashes=False)
@jwt_required()
def get_groups():
    """List groups, filterable by department, year and search text."""
    page, limit = get_pagination_args()
    query = Group.query

    if request.args.get('department'):
        query = query.filter(Group.department_id == request.args.get('department', type=int))
    if request.args.get('year'):
        query = query.filter(Group.year == request.args.get('year', type=int))
    search = request.args.get('search', '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Group.name.ilike(pattern), Group.code.ilike(pattern)))

    pagination = query.order_by(Group.year, Group.name).paginate(page=page, per_page=limit, error_out=False)

    return success_response(
        data=[group.to_dict() for group in pagination.items],
        pagination=pagination_meta(pagination)
    )


@groups_bp.route('/my-groups', methods=['GET'])
@jwt_required()
@doctor_required
def get_my_groups():
    """Groups assigned to the calling doctor."""
    groups = get_current_user().assigned_groups
    return success_response(
        data=[group.to_dict(include_students=True) for group in groups],
        count=len(groups)
    )


@groups_bp.route('/doctor/<int:doctor_id>', methods=['GET'])
@jwt_required()
@doctor_required
def get_doctor_groups(doctor_id):
    """Groups assigned to a doctor; doctors always get their own."""
    user = get_current_user()
    if user.is_doctor():
        doctor_id = user.id

    doctor = User.query.filter_by(id=doctor_id, role=UserRole.DOCTOR).first()
    if not doctor:
        raise NotFoundError('Doctor not found')

    return success_response(data=[group.to_dict() for group in doctor.assigned_groups])


@groups_bp.route('/<int:group_id>', methods=['GET'])
@jwt_required()
def get_group(group_id):
    _check_group_access(group_id)
    group = Group.get_or_404(group_id, 'Group not found')
    return success_response(data=group.to_dict(include_students=True))


@groups_bp.route('/', methods=['POST'], strict_slashes=False)
@jwt_required()
@admin_required
def create_group():
    """Create a group, optionally assigning a doctor and students."""
    data = get_json_body()
    _validate(data)

    department = AccountService.resolve_department(data['department'])
    name = data['name'].strip()
    code = data['code'].strip().upper()
    year = int(data['year'])
    _ensure_unique(name, code, department.id, year)

    group = Group(
        name=name,
        code=code,
        department_id=department.id,
        year=year,
        semester=int(data.get('semester') or 1),
        capacity=int(data.get('capacity') or 30)
    )
    db.session.add(group)
    db.session.flush()

    if data.get('doctor'):
        _assign_doctor(group, data['doctor'])
    if data.get('selectedStudents'):
        _assign_students(group, data['selectedStudents'])

    db.session.commit()

    return success_response(
        data=group.to_dict(include_students=True),
        message='Group created successfully',
        status_code=201
    )


@groups_bp.route('/<int:group_id>', methods=['PUT'])
@jwt_required()
@admin_required
def update_group(group_id):
    group = Group.get_or_404(group_id, 'Group not found')
    data = get_json_body()
    _validate(data, partial=True)

    if data.get('department'):
        group.department_id = AccountService.resolve_department(data['department']).id
    if data.get('name'):
        group.name = data['name'].strip()
    if data.get('code'):
        group.code = data['code'].strip().upper()
    for field in ('year', 'semester', 'capacity'):
        if data.get(field) not in (None, ''):
            setattr(group, field, int(data[field]))

    _ensure_unique(group.name, group.code, group.department_id, group.year, exclude_id=group.id)

    if 'doctor' in data:
        _assign_doctor(group, data['doctor'])
    if 'selectedStudents' in data:
        _assign_students(group, data['selectedStudents'] or [])

    db.session.commit()

    return success_response(data=group.to_dict(include_students=True), message='Group updated successfully')


@groups_bp.route('/<int:group_id>', methods=['DELETE'])
@jwt_required()
@admin_required
def delete_group(group_id):
    """Delete a group with no students or attendance left."""
    group = Group.get_or_404(group_id, 'Group not found')

    if group.students.count() > 0:
        raise ValidationError('Cannot delete group that has students assigned')
    if group.attendance_records.count() > 0:
        raise ValidationError('Cannot delete group that has attendance records')

    group.assigned_doctors = []
    group.delete()

    return success_response(message='Group deleted successfully')


@groups_bp.route('/<int:group_id>/stats', methods=['GET'])
@jwt_required()
def get_group_stats(group_id):
    _check_group_access(group_id)
    group = Group.get_or_404(group_id, 'Group not found')

    summary = ReportService.summarize(ReportService.status_counts(
        AttendanceRecord.query.filter(AttendanceRecord.group_id == group.id)
    ))

    return success_response(data={
        'students': group.students.count(),
        'totalLectures': summary['total'],
        'attendanceStats': summary,
        'averageAttendance': summary['attendancePercentage']
    })
