"""Attendance reports and exports."""
from flask import Blueprint, request, send_file
from flask_jwt_extended import get_current_user, jwt_required

from attendance_app.services.attendance_service import AttendanceService
from attendance_app.services.report_service import ReportService
from attendance_app.utils.decorators import admin_required, doctor_required
from attendance_app.utils.exceptions import ForbiddenError
from attendance_app.utils.helpers import parse_date_range_args, success_response

reports_bp = Blueprint('reports', __name__)

EXPORT_FILTERS = ('groupId', 'studentId', 'doctorId', 'status', 'startDate', 'endDate')


@reports_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Reports service is running')


@reports_bp.route('/student-attendance/<int:student_id>', methods=['GET'])
@jwt_required()
def student_attendance_report(student_id):
    """Per-student records and summary; students only see their own."""
    user = get_current_user()
    if user.is_student() and user.id != student_id:
        raise ForbiddenError('Can only access your own data')

    start, end = parse_date_range_args()
    report = ReportService.student_report(student_id, start, end)

    if user.is_doctor() and report['student'].get('group_id') not in user.assigned_group_ids():
        raise ForbiddenError('Can only access students in your assigned groups')

    return success_response(data=report)


@reports_bp.route('/group-attendance/<int:group_id>', methods=['GET'])
@jwt_required()
@doctor_required
def group_attendance_report(group_id):
    user = get_current_user()
    if user.is_doctor() and not user.is_assigned_to(group_id):
        raise ForbiddenError('Can only access assigned groups')

    start, end = parse_date_range_args()
    return success_response(data=ReportService.group_report(group_id, start, end))


@reports_bp.route('/doctor-attendance/<int:doctor_id>', methods=['GET'])
@jwt_required()
@doctor_required
def doctor_attendance_report(doctor_id):
    user = get_current_user()
    if user.is_doctor() and user.id != doctor_id:
        raise ForbiddenError('Can only access your own reports')

    start, end = parse_date_range_args()
    return success_response(data=ReportService.doctor_report(doctor_id, start, end))


@reports_bp.route('/department-attendance/<int:department_id>', methods=['GET'])
@jwt_required()
@admin_required
def department_attendance_report(department_id):
    start, end = parse_date_range_args()
    return success_response(data=ReportService.department_report(department_id, start, end))


@reports_bp.route('/overview', methods=['GET'])
@jwt_required()
@admin_required
def overview_report():
    """System-wide counters for the admin dashboard."""
    return success_response(data=ReportService.overview())


@reports_bp.route('/export', methods=['GET'])
@jwt_required()
@doctor_required
def export_attendance():
    """Download the caller's visible records as CSV or Excel."""
    filters = {key: request.args.get(key) for key in EXPORT_FILTERS}
    query = AttendanceService.scoped_query(get_current_user(), filters)

    buffer, filename, mimetype = ReportService.export_records(
        query, request.args.get('format', 'csv').lower()
    )

    return send_file(buffer, mimetype=mimetype, as_attachment=True, download_name=filename)
