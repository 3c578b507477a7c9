"""Test departments, groups, doctors and students endpoints."""
import io
from datetime import datetime

from attendance_app import db
from attendance_app.models import AttendanceRecord, Department, Group, User
from attendance_app.services.attendance_service import AttendanceService
from tests.conftest import auth_headers

LECTURE = datetime(2026, 3, 2, 10, 0, 0)


class TestDepartments:

    def test_create_and_list(self, client, admin_headers):
        response = client.post('/api/departments', headers=admin_headers, json={
            'name': 'Mathematics', 'code': 'math', 'description': 'Pure and applied'
        })
        assert response.status_code == 201
        assert response.get_json()['data']['code'] == 'MATH'

        response = client.get('/api/departments?search=math', headers=admin_headers)
        body = response.get_json()
        assert body['pagination']['total'] == 1
        assert body['data'][0]['name'] == 'Mathematics'

    def test_duplicate_code(self, client, department, admin_headers):
        response = client.post('/api/departments', headers=admin_headers,
                               json={'name': 'Another', 'code': 'cs'})
        assert response.status_code == 409

    def test_validation(self, client, admin_headers):
        response = client.post('/api/departments', headers=admin_headers, json={'name': 'X'})
        assert response.status_code == 400
        assert {error['field'] for error in response.get_json()['errors']} == {'name', 'code'}

    def test_create_requires_admin(self, client, doctor_headers):
        response = client.post('/api/departments', headers=doctor_headers, json={'name': 'Art', 'code': 'ART'})
        assert response.status_code == 403

    def test_update(self, client, department, admin_headers):
        response = client.put(f'/api/departments/{department.id}', headers=admin_headers,
                              json={'description': 'Computing'})
        assert response.status_code == 200
        assert response.get_json()['data']['description'] == 'Computing'

    def test_delete_with_groups_rejected(self, client, department, group, admin_headers):
        response = client.delete(f'/api/departments/{department.id}', headers=admin_headers)
        assert response.status_code == 400

    def test_delete_empty(self, client, admin_headers):
        department = Department(name='Physics', code='PHY')
        department.save()

        department_id = department.id
        response = client.delete(f'/api/departments/{department_id}', headers=admin_headers)

        assert response.status_code == 200
        assert db.session.get(Department, department_id) is None

    def test_missing(self, client, admin_headers):
        response = client.get('/api/departments/999', headers=admin_headers)
        assert response.status_code == 404
        assert response.get_json()['message'] == 'Department not found'

    def test_stats(self, client, department, student, doctor, admin_headers):
        response = client.get(f'/api/departments/{department.id}/stats', headers=admin_headers)

        data = response.get_json()['data']
        assert data['groups'] == 1
        assert data['doctors'] == 1
        assert data['students'] == 1
        assert data['attendance']['attendancePercentage'] == 0


class TestGroups:

    def test_create_with_doctor_and_students(self, client, department, doctor, student, admin_headers):
        response = client.post('/api/groups', headers=admin_headers, json={
            'name': 'CS Year 2 - A',
            'code': 'cs2a',
            'department': department.id,
            'year': 2,
            'doctor': doctor.id,
            'selectedStudents': [student.id]
        })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['code'] == 'CS2A'
        assert [s['id'] for s in data['students']] == [student.id]
        assert db.session.get(User, student.id).group_id == data['id']
        assert data['id'] in db.session.get(User, doctor.id).assigned_group_ids()

    def test_duplicate_name_in_department_year(self, client, group, admin_headers):
        response = client.post('/api/groups', headers=admin_headers, json={
            'name': group.name, 'code': 'NEW1', 'department': group.department_id, 'year': group.year
        })
        assert response.status_code == 409

    def test_invalid_doctor_id(self, client, department, admin_headers):
        response = client.post('/api/groups', headers=admin_headers, json={
            'name': 'CS Year 3 - A', 'code': 'CS3A', 'department': department.id, 'year': 3,
            'doctor': 'abc'
        })

        assert response.status_code == 400
        assert response.get_json()['errors'][0]['field'] == 'doctor'

    def test_invalid_student_ids(self, client, department, admin_headers):
        response = client.post('/api/groups', headers=admin_headers, json={
            'name': 'CS Year 3 - A', 'code': 'CS3A', 'department': department.id, 'year': 3,
            'selectedStudents': ['x']
        })

        assert response.status_code == 400
        assert response.get_json()['errors'][0]['field'] == 'selectedStudents'
        assert Group.query.filter_by(code='CS3A').first() is None

    def test_update_with_invalid_student_ids(self, client, group, admin_headers):
        response = client.put(f'/api/groups/{group.id}', headers=admin_headers,
                              json={'selectedStudents': [1, 'two']})
        assert response.status_code == 400

    def test_my_groups(self, client, group, doctor_headers):
        response = client.get('/api/groups/my-groups', headers=doctor_headers)

        assert response.status_code == 200
        assert [g['id'] for g in response.get_json()['data']] == [group.id]

    def test_doctor_cannot_view_unassigned_group(self, client, other_group, doctor_headers):
        response = client.get(f'/api/groups/{other_group.id}', headers=doctor_headers)
        assert response.status_code == 403

    def test_delete_with_students_rejected(self, client, group, student, admin_headers):
        response = client.delete(f'/api/groups/{group.id}', headers=admin_headers)
        assert response.status_code == 400

    def test_delete_empty_group(self, client, other_group, admin_headers):
        group_id = other_group.id
        response = client.delete(f'/api/groups/{group_id}', headers=admin_headers)

        assert response.status_code == 200
        assert db.session.get(Group, group_id) is None

    def test_list_filters(self, client, group, other_group, admin_headers):
        response = client.get('/api/groups?search=CS1B', headers=admin_headers)
        assert [g['id'] for g in response.get_json()['data']] == [other_group.id]


class TestDoctors:

    def test_create_doctor(self, client, department, group, admin_headers):
        response = client.post('/api/doctors', headers=admin_headers, json={
            'name': 'Dr. New',
            'email': 'dr.new@university.edu',
            'password': 'password123',
            'department': department.id,
            'assignedGroups': [group.id],
            'profile': {'title': 'Prof.', 'specialization': 'Databases'}
        })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['role'] == 'doctor'
        assert data['profile']['title'] == 'Prof.'
        assert [g['id'] for g in data['assigned_groups']] == [group.id]

    def test_invalid_title(self, client, admin_headers):
        response = client.post('/api/doctors', headers=admin_headers, json={
            'name': 'Dr. New', 'email': 'dr.new@university.edu', 'password': 'password123',
            'profile': {'title': 'Wizard'}
        })
        assert response.status_code == 400

    def test_assign_groups(self, client, doctor, group, other_group, admin_headers):
        response = client.post(f'/api/doctors/{doctor.id}/assign-groups', headers=admin_headers,
                               json={'groupIds': [other_group.id]})

        assert response.status_code == 200
        assert db.session.get(User, doctor.id).assigned_group_ids() == {other_group.id}

    def test_assign_unknown_group(self, client, doctor, admin_headers):
        response = client.post(f'/api/doctors/{doctor.id}/assign-groups', headers=admin_headers,
                               json={'groupIds': [999]})
        assert response.status_code == 400

    def test_delete_with_records_rejected(self, client, doctor, student, group, admin_headers):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)

        response = client.delete(f'/api/doctors/{doctor.id}', headers=admin_headers)
        assert response.status_code == 400

    def test_dashboard(self, client, doctor, student, group, doctor_headers):
        AttendanceService.record(student.id, group.id, doctor)

        response = client.get('/api/doctors/dashboard', headers=doctor_headers)

        assert response.status_code == 200
        stats = response.get_json()['data']['statistics']
        assert stats['totalStudents'] == 1
        assert stats['todayAttendance'] == 1
        assert stats['groupStats'][0]['present'] == 1

    def test_list_requires_admin(self, client, doctor_headers):
        assert client.get('/api/doctors', headers=doctor_headers).status_code == 403

    def test_doctor_attendance(self, client, doctor, student, group, doctor_headers):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)

        response = client.get('/api/doctors/attendance', headers=doctor_headers)
        assert response.get_json()['pagination']['total'] == 1


class TestStudents:

    def test_create_student(self, client, group, admin_headers):
        response = client.post('/api/students', headers=admin_headers, json={
            'name': 'Noor Abbas',
            'email': 'noor@university.edu',
            'password': 'password123',
            'group': group.id,
            'year': 1
        })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['department']['id'] == group.department_id
        assert data['student_number'].startswith('STU')

    def test_duplicate_student_number(self, client, student, admin_headers):
        response = client.post('/api/students', headers=admin_headers, json={
            'name': 'Copy', 'email': 'copy@university.edu', 'password': 'password123',
            'studentNumber': student.student_number
        })
        assert response.status_code == 409

    def test_student_reads_only_self(self, client, student, second_student, student_headers):
        assert client.get(f'/api/students/{student.id}', headers=student_headers).status_code == 200

        response = client.get(f'/api/students/{second_student.id}', headers=student_headers)
        assert response.status_code == 403
        assert response.get_json()['message'] == 'Can only access your own data'

    def test_student_cannot_list(self, client, student_headers):
        assert client.get('/api/students', headers=student_headers).status_code == 403

    def test_doctor_lists_assigned_students(self, client, student, other_doctor, doctor_headers):
        response = client.get('/api/students', headers=doctor_headers)
        assert [s['id'] for s in response.get_json()['data']] == [student.id]

        response = client.get('/api/students', headers=auth_headers(other_doctor))
        assert response.get_json()['data'] == []

    def test_update_student_number_refreshes_qr(self, client, student, admin_headers):
        response = client.put(f'/api/students/{student.id}', headers=admin_headers,
                              json={'studentNumber': 'STU100'})

        assert response.status_code == 200
        refreshed = db.session.get(User, student.id)
        assert '"studentNumber":"STU100"' in refreshed.qr_code

    def test_delete_cascades_attendance(self, client, student, doctor, group, admin_headers):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)

        response = client.delete(f'/api/students/{student.id}', headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['data']['deletedAttendanceRecords'] == 1
        assert AttendanceRecord.query.count() == 0

    def test_profile(self, client, student, doctor, group, student_headers):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE, status='late')

        response = client.get(f'/api/students/{student.id}/profile', headers=student_headers)

        data = response.get_json()['data']
        assert data['statistics']['late'] == 1
        assert len(data['recentAttendance']) == 1

    def test_bulk_import(self, client, group, student, admin_headers):
        csv = (
            'name,email,password\n'
            'Maryam Saad,maryam@university.edu,password123\n'
            'Duplicate,student@university.edu,password123\n'
        )
        response = client.post(
            '/api/students/bulk',
            headers=admin_headers,
            data={'file': (io.BytesIO(csv.encode('utf-8')), 'students.csv'), 'group': str(group.id)},
            content_type='multipart/form-data'
        )

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['successful'] == 1
        assert data['failed'] == 1
        created = User.query.filter_by(email='maryam@university.edu').first()
        assert created.group_id == group.id

    def test_bulk_import_missing_columns(self, client, admin_headers):
        response = client.post(
            '/api/students/bulk',
            headers=admin_headers,
            data={'file': (io.BytesIO(b'name\nOnly Name\n'), 'students.csv')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 400
