"""Test attendance reports and exports."""
import io
from datetime import datetime, timedelta

import pandas as pd
import pytest

from attendance_app.services.attendance_service import AttendanceService
from attendance_app.services.report_service import ReportService
from tests.conftest import auth_headers

LECTURE = datetime(2026, 3, 2, 10, 0, 0)


@pytest.fixture
def records(student, second_student, doctor, group):
    AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)
    AttendanceService.record(second_student.id, group.id, doctor, lecture_date=LECTURE, status='absent')
    AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE + timedelta(days=1))
    AttendanceService.record(second_student.id, group.id, doctor,
                             lecture_date=LECTURE + timedelta(days=40), status='late')


def test_calculate_percentage():
    assert ReportService.calculate_percentage(0, 0) == 0
    assert ReportService.calculate_percentage(1, 3) == 33.33
    assert ReportService.calculate_percentage(4, 4) == 100


def test_summarize_fills_missing_statuses():
    summary = ReportService.summarize({'present': 2})
    assert summary == {
        'total': 2, 'present': 2, 'absent': 0, 'late': 0, 'excused': 0, 'attendancePercentage': 100
    }


def test_student_report(client, records, student, student_headers):
    response = client.get(f'/api/reports/student-attendance/{student.id}', headers=student_headers)

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['student']['id'] == student.id
    assert data['statistics']['total'] == 2
    assert data['statistics']['attendancePercentage'] == 100


def test_student_report_date_range(client, records, student, student_headers):
    day = LECTURE.date().isoformat()
    response = client.get(f'/api/reports/student-attendance/{student.id}?startDate={day}&endDate={day}',
                          headers=student_headers)
    assert response.get_json()['data']['statistics']['total'] == 1


def test_student_report_rejects_inverted_range(client, records, student, student_headers):
    response = client.get(
        f'/api/reports/student-attendance/{student.id}?startDate=2026-04-01&endDate=2026-03-01',
        headers=student_headers
    )
    assert response.status_code == 400


def test_student_cannot_read_other_student_report(client, records, second_student, student_headers):
    response = client.get(f'/api/reports/student-attendance/{second_student.id}', headers=student_headers)
    assert response.status_code == 403


def test_group_report(client, records, group, student, doctor_headers):
    response = client.get(f'/api/reports/group-attendance/{group.id}', headers=doctor_headers)

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['overallStats']['total'] == 4
    assert data['overallStats']['present'] == 2
    assert data['studentStats'][0]['student']['id'] == student.id
    assert [day['date'] for day in data['dailyStats']][:2] == [
        LECTURE.date().isoformat(), (LECTURE + timedelta(days=1)).date().isoformat()
    ]


def test_group_report_unassigned_doctor(client, records, group, other_doctor):
    response = client.get(f'/api/reports/group-attendance/{group.id}', headers=auth_headers(other_doctor))
    assert response.status_code == 403


def test_doctor_report_monthly(client, records, doctor, doctor_headers):
    response = client.get(f'/api/reports/doctor-attendance/{doctor.id}', headers=doctor_headers)

    assert response.status_code == 200
    months = response.get_json()['data']['monthlyStats']
    assert [month['month'] for month in months] == ['2026-03', '2026-04']
    assert months[0]['total'] == 3


def test_doctor_report_other_doctor(client, records, doctor, other_doctor):
    response = client.get(f'/api/reports/doctor-attendance/{doctor.id}', headers=auth_headers(other_doctor))
    assert response.status_code == 403


def test_department_report(client, records, department, admin_headers):
    response = client.get(f'/api/reports/department-attendance/{department.id}', headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['overallStats']['total'] == 4
    assert data['yearStats'][0]['year'] == 1


def test_department_report_admin_only(client, department, doctor_headers):
    response = client.get(f'/api/reports/department-attendance/{department.id}', headers=doctor_headers)
    assert response.status_code == 403


def test_overview(client, records, admin_headers):
    response = client.get('/api/reports/overview', headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['counts']['students'] == 2
    assert data['counts']['doctors'] == 1
    assert len(data['recentAttendance']) == 4


def test_export_csv(client, records, doctor_headers):
    response = client.get('/api/reports/export?format=csv', headers=doctor_headers)

    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment' in response.headers['Content-Disposition']

    df = pd.read_csv(io.BytesIO(response.data))
    assert len(df) == 4
    assert set(df['Status']) == {'present', 'absent', 'late'}


def test_export_xlsx(client, records, admin_headers):
    response = client.get('/api/reports/export?format=xlsx&status=present', headers=admin_headers)

    assert response.status_code == 200
    df = pd.read_excel(io.BytesIO(response.data))
    assert len(df) == 2


def test_export_unknown_format(client, doctor_headers):
    response = client.get('/api/reports/export?format=pdf', headers=doctor_headers)
    assert response.status_code == 400


def test_export_scoped_to_assigned_groups(client, records, other_doctor):
    response = client.get('/api/reports/export', headers=auth_headers(other_doctor))
    assert len(pd.read_csv(io.BytesIO(response.data))) == 0
