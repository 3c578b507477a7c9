"""Test attendance recording rules and endpoints."""
from datetime import datetime, timedelta

import pytest

from attendance_app import db
from attendance_app.models.attendance import AttendanceRecord, AttendanceStatus, RecordSource
from attendance_app.services.attendance_service import AttendanceService
from attendance_app.utils.exceptions import (
    DuplicateAttendanceError, InactiveAccountError, NotAssignedError, NotInGroupError
)

LECTURE = datetime(2026, 3, 2, 10, 0, 0)


def scan(client, headers, qr_data, group_id, **extra):
    return client.post('/api/attendance/scan', headers=headers,
                       json={'qrData': qr_data, 'groupId': group_id, **extra})


def manual(client, headers, student_id, group_id, status='present', lecture_date=LECTURE, **extra):
    return client.post('/api/attendance/record', headers=headers, json={
        'studentId': student_id,
        'groupId': group_id,
        'status': status,
        'lectureDate': lecture_date.isoformat(),
        **extra
    })


class TestScan:

    def test_scan_records_present(self, client, student, doctor, group, doctor_headers):
        response = scan(client, doctor_headers, student.qr_code, group.id,
                        lectureDetails={'subject': 'Algorithms', 'lectureNumber': 3})

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['status'] == 'present'
        assert data['recorded_by'] == 'qr_scan'
        assert data['student_id'] == student.id
        assert data['doctor_id'] == doctor.id
        assert data['lecture_details']['subject'] == 'Algorithms'

    def test_second_scan_same_day_is_conflict(self, client, student, group, doctor_headers):
        assert scan(client, doctor_headers, student.qr_code, group.id).status_code == 201

        response = scan(client, doctor_headers, student.qr_code, group.id)

        assert response.status_code == 409
        assert response.get_json()['data']['student_id'] == student.id
        assert AttendanceRecord.query.count() == 1

    def test_scan_unassigned_group(self, client, student, other_doctor, group):
        from tests.conftest import auth_headers
        response = scan(client, auth_headers(other_doctor), student.qr_code, group.id)

        assert response.status_code == 403
        assert AttendanceRecord.query.count() == 0

    def test_scan_invalid_payload(self, client, group, doctor_headers):
        response = scan(client, doctor_headers, 'garbage', group.id)
        assert response.status_code == 400

    def test_scan_expired_payload(self, client, student, group, doctor_headers):
        from attendance_app.services.qr_service import QRService
        stale = QRService.generate_student_qr_data(student.id, student.student_number, now_ms=0)

        response = scan(client, doctor_headers, stale, group.id)

        assert response.status_code == 400
        assert response.get_json()['message'] == 'QR code has expired'

    def test_scan_mismatched_student_number(self, client, student, group, doctor_headers):
        from attendance_app.services.qr_service import QRService
        forged = QRService.generate_student_qr_data(student.id, 'STU999')

        response = scan(client, doctor_headers, forged, group.id)
        assert response.status_code == 400

    def test_scan_unknown_student(self, client, group, doctor_headers):
        from attendance_app.services.qr_service import QRService
        response = scan(client, doctor_headers, QRService.generate_student_qr_data(9999, 'STU9999'), group.id)
        assert response.status_code == 404

    def test_scan_requires_doctor(self, client, student, group, student_headers):
        response = scan(client, student_headers, student.qr_code, group.id)
        assert response.status_code == 403

    def test_scan_missing_fields(self, client, doctor_headers):
        response = client.post('/api/attendance/scan', headers=doctor_headers, json={})
        assert response.status_code == 400


class TestRecordRules:

    def test_duplicate_same_day(self, app, student, doctor, group):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)

        with pytest.raises(DuplicateAttendanceError):
            AttendanceService.record(student.id, group.id, doctor,
                                     lecture_date=LECTURE.replace(hour=23, minute=59))

        assert AttendanceRecord.query.count() == 1

    def test_unique_index_rejects_concurrent_duplicate(self, app, student, doctor, group, monkeypatch):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)
        monkeypatch.setattr(AttendanceService, 'find_for_day', staticmethod(lambda *args: None))

        with pytest.raises(DuplicateAttendanceError) as excinfo:
            AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE.replace(hour=14))

        assert excinfo.value.status_code == 409
        assert AttendanceRecord.query.count() == 1

    def test_absent_record_does_not_hold_index_slot(self, app, student, doctor, group, monkeypatch):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE, status='absent')
        monkeypatch.setattr(AttendanceService, 'find_for_day', staticmethod(lambda *args: None))

        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE.replace(hour=14))

        statuses = {record.status for record in AttendanceRecord.query.all()}
        assert statuses == {AttendanceStatus.ABSENT, AttendanceStatus.PRESENT}

    def test_scan_then_manual_same_day(self, client, student, doctor, group, doctor_headers):
        AttendanceService.scan(student.qr_code, group.id, doctor, now=LECTURE)

        response = manual(client, doctor_headers, student.id, group.id, status='late',
                          lecture_date=LECTURE + timedelta(hours=2))

        assert response.status_code == 409
        assert response.get_json()['data']['recorded_by'] == 'qr_scan'
        assert AttendanceRecord.query.count() == 1

    def test_manual_then_scan_same_day(self, app, student, doctor, group):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE, status='excused')

        with pytest.raises(DuplicateAttendanceError):
            AttendanceService.scan(student.qr_code, group.id, doctor, now=LECTURE + timedelta(hours=1))

        assert AttendanceRecord.query.count() == 1

    def test_next_day_late_is_new_record(self, app, student, doctor, group):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)
        record = AttendanceService.record(student.id, group.id, doctor,
                                          lecture_date=LECTURE + timedelta(days=1), status='late')

        assert record.status == AttendanceStatus.LATE
        assert AttendanceRecord.query.filter_by(student_id=student.id).count() == 2

    def test_not_assigned(self, app, student, other_doctor, group):
        with pytest.raises(NotAssignedError):
            AttendanceService.record(student.id, group.id, other_doctor, lecture_date=LECTURE)

    def test_not_in_group(self, app, student, doctor, other_group):
        doctor.assigned_groups.append(other_group)
        db.session.commit()

        with pytest.raises(NotInGroupError):
            AttendanceService.record(student.id, other_group.id, doctor, lecture_date=LECTURE)

    def test_inactive_student(self, app, student, doctor, group):
        student.is_active = False
        db.session.commit()

        with pytest.raises(InactiveAccountError):
            AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)

    def test_admin_may_record_any_group(self, app, student, admin, group):
        record = AttendanceService.record(student.id, group.id, admin, lecture_date=LECTURE)
        assert record.recorded_by == RecordSource.ADMIN
        assert record.doctor_id == admin.id

    def test_lecture_day_is_derived(self, app, student, doctor, group):
        record = AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)
        assert record.lecture_day == LECTURE.date()

    def test_scan_service_with_explicit_time(self, app, student, doctor, group):
        record = AttendanceService.scan(student.qr_code, group.id, doctor, now=LECTURE)
        assert record.lecture_date == LECTURE
        assert record.recorded_by == RecordSource.QR_SCAN


class TestManualRecord:

    def test_manual_record(self, client, student, group, doctor_headers):
        response = manual(client, doctor_headers, student.id, group.id, status='excused', notes='Medical leave')

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['status'] == 'excused'
        assert data['recorded_by'] == 'manual'
        assert data['notes'] == 'Medical leave'

    def test_manual_record_validation(self, client, student, group, doctor_headers):
        response = manual(client, doctor_headers, student.id, group.id, status='sleeping')
        assert response.status_code == 400

        response = manual(client, doctor_headers, student.id, group.id, notes='x' * 501)
        assert response.status_code == 400

    def test_manual_record_unassigned(self, client, student, group, other_doctor):
        from tests.conftest import auth_headers
        response = manual(client, auth_headers(other_doctor), student.id, group.id)
        assert response.status_code == 403

    def test_manual_record_by_admin(self, client, student, group, admin_headers):
        response = manual(client, admin_headers, student.id, group.id)
        assert response.status_code == 201
        assert response.get_json()['data']['recorded_by'] == 'admin'

    def test_manual_duplicate_returns_existing(self, client, student, group, doctor_headers):
        manual(client, doctor_headers, student.id, group.id)
        response = manual(client, doctor_headers, student.id, group.id, status='late',
                          lecture_date=LECTURE + timedelta(hours=3))

        assert response.status_code == 409
        assert response.get_json()['data']['status'] == 'present'


class TestBulkRecord:

    def test_partial_failure(self, client, student, second_student, doctor, group, doctor_headers):
        AttendanceService.record(second_student.id, group.id, doctor, lecture_date=LECTURE)

        response = client.post('/api/attendance/bulk-record', headers=doctor_headers, json={
            'groupId': group.id,
            'lectureDate': LECTURE.isoformat(),
            'attendanceList': [
                {'studentId': student.id, 'status': 'present'},
                {'studentId': second_student.id, 'status': 'late'},
                {'studentId': 9999, 'status': 'present'},
                {'status': 'present'},
            ]
        })

        assert response.status_code == 200
        data = response.get_json()['data']
        assert [item['studentId'] for item in data['successful']] == [student.id]
        assert len(data['errors']) == 3
        assert AttendanceRecord.query.count() == 2

    def test_bulk_unassigned_group(self, client, student, group, other_doctor):
        from tests.conftest import auth_headers
        response = client.post('/api/attendance/bulk-record', headers=auth_headers(other_doctor), json={
            'groupId': group.id,
            'attendanceList': [{'studentId': student.id}]
        })
        assert response.status_code == 403

    def test_bulk_requires_list(self, client, group, doctor_headers):
        response = client.post('/api/attendance/bulk-record', headers=doctor_headers,
                               json={'groupId': group.id, 'attendanceList': 'all'})
        assert response.status_code == 400


class TestUpdateDelete:

    @pytest.fixture
    def record(self, student, doctor, group):
        return AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)

    def test_update_status(self, client, record, doctor_headers):
        response = client.put(f'/api/attendance/{record.id}', headers=doctor_headers,
                              json={'status': 'late', 'notes': 'Arrived 20 minutes late'})

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'late'
        assert data['notes'] == 'Arrived 20 minutes late'

    def test_update_other_doctors_record(self, client, record, other_doctor):
        from tests.conftest import auth_headers
        response = client.put(f'/api/attendance/{record.id}', headers=auth_headers(other_doctor),
                              json={'status': 'absent'})
        assert response.status_code == 403

    def test_admin_may_update_any_record(self, client, record, admin_headers):
        response = client.put(f'/api/attendance/{record.id}', headers=admin_headers, json={'status': 'absent'})
        assert response.status_code == 200

    def test_delete(self, client, record, doctor_headers):
        response = client.delete(f'/api/attendance/{record.id}', headers=doctor_headers)

        assert response.status_code == 200
        assert AttendanceRecord.query.count() == 0

    def test_delete_other_doctors_record(self, client, record, other_doctor):
        from tests.conftest import auth_headers
        response = client.delete(f'/api/attendance/{record.id}', headers=auth_headers(other_doctor))

        assert response.status_code == 403
        assert AttendanceRecord.query.count() == 1

    def test_delete_missing(self, client, doctor_headers):
        assert client.delete('/api/attendance/404', headers=doctor_headers).status_code == 404


class TestListing:

    @pytest.fixture
    def records(self, student, second_student, doctor, group):
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE)
        AttendanceService.record(second_student.id, group.id, doctor, lecture_date=LECTURE, status='absent')
        AttendanceService.record(student.id, group.id, doctor, lecture_date=LECTURE + timedelta(days=1),
                                 status='late')

    def test_doctor_sees_assigned_groups(self, client, records, doctor_headers, other_doctor):
        from tests.conftest import auth_headers
        response = client.get('/api/attendance', headers=doctor_headers)
        assert response.get_json()['pagination']['total'] == 3

        response = client.get('/api/attendance', headers=auth_headers(other_doctor))
        assert response.get_json()['pagination']['total'] == 0

    def test_student_sees_only_own(self, client, records, student, student_headers):
        response = client.get('/api/attendance', headers=student_headers)

        data = response.get_json()['data']
        assert len(data) == 2
        assert {record['student_id'] for record in data} == {student.id}

    def test_filters(self, client, records, doctor_headers):
        response = client.get('/api/attendance?status=absent', headers=doctor_headers)
        assert response.get_json()['pagination']['total'] == 1

        response = client.get(
            f'/api/attendance?startDate={LECTURE.date().isoformat()}&endDate={LECTURE.date().isoformat()}',
            headers=doctor_headers
        )
        assert response.get_json()['pagination']['total'] == 2

    def test_pagination(self, client, records, doctor_headers):
        response = client.get('/api/attendance?page=2&limit=2', headers=doctor_headers)

        body = response.get_json()
        assert len(body['data']) == 1
        assert body['pagination'] == {'page': 2, 'pages': 2, 'total': 3}

    def test_stats(self, client, records, doctor_headers):
        data = client.get('/api/attendance/stats', headers=doctor_headers).get_json()['data']

        assert data['total'] == 3
        assert data['present'] == 1
        assert data['late'] == 1
        assert data['absent'] == 1
        assert data['attendancePercentage'] == 33.33

    def test_stats_without_records(self, client, doctor_headers):
        data = client.get('/api/attendance/stats', headers=doctor_headers).get_json()['data']
        assert data['total'] == 0
        assert data['attendancePercentage'] == 0
