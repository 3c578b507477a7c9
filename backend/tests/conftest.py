"""Shared pytest fixtures."""
import pytest
from flask_jwt_extended import create_access_token

from attendance_app import create_app, db
from attendance_app.models import Department, Group, User, UserRole
from attendance_app.services.qr_service import QRService

PASSWORD = 'password123'


@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def make_user(role, email, name, **fields):
    user = User(email=email, name=name, role=role, **fields)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user):
    token = create_access_token(identity=str(user.id), additional_claims={'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def department(app):
    department = Department(name='Computer Science', code='CS')
    department.save()
    return department


@pytest.fixture
def group(department):
    group = Group(name='CS Year 1 - A', code='CS1A', department_id=department.id, year=1)
    group.save()
    return group


@pytest.fixture
def other_group(department):
    group = Group(name='CS Year 1 - B', code='CS1B', department_id=department.id, year=1)
    group.save()
    return group


@pytest.fixture
def admin(app):
    return make_user(UserRole.ADMIN, 'admin@university.edu', 'System Admin')


@pytest.fixture
def doctor(group, department):
    doctor = make_user(UserRole.DOCTOR, 'doctor@university.edu', 'Dr. Doctor',
                       department_id=department.id, profile={'title': 'Dr.'})
    doctor.assigned_groups = [group]
    db.session.commit()
    return doctor


@pytest.fixture
def other_doctor(other_group, department):
    doctor = make_user(UserRole.DOCTOR, 'other.doctor@university.edu', 'Dr. Other',
                       department_id=department.id)
    doctor.assigned_groups = [other_group]
    db.session.commit()
    return doctor


@pytest.fixture
def student(group):
    student = make_user(UserRole.STUDENT, 'student@university.edu', 'Ali Kareem',
                        student_number='STU001', group_id=group.id,
                        department_id=group.department_id, year=1)
    QRService.ensure_student_qr(student)
    return student


@pytest.fixture
def second_student(group):
    student = make_user(UserRole.STUDENT, 'student2@university.edu', 'Sara Mahmoud',
                        student_number='STU002', group_id=group.id,
                        department_id=group.department_id, year=1)
    QRService.ensure_student_qr(student)
    return student


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def doctor_headers(doctor):
    return auth_headers(doctor)


@pytest.fixture
def student_headers(student):
    return auth_headers(student)
