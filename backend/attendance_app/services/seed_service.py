"""Database seeding service for demo data."""
import logging
import random
from datetime import datetime, timedelta

from attendance_app import db
from attendance_app.models.attendance import AttendanceRecord, AttendanceStatus, RecordSource
from attendance_app.models.department import Department
from attendance_app.models.group import Group
from attendance_app.models.user import User, UserRole
from attendance_app.services.qr_service import QRService

logger = logging.getLogger(__name__)

DEPARTMENTS = [
    ('Computer Science', 'CS', 'Software, algorithms and systems'),
    ('Information Technology', 'IT', 'Networks and information systems'),
]

DOCTORS = [
    ('Dr. Ahmed Hassan', 'ahmed.hassan', 'Prof.', 'CS'),
    ('Dr. Fatima Ali', 'fatima.ali', 'Lecturer', 'CS'),
    ('Dr. Omar Salem', 'omar.salem', 'Ass. Prof.', 'IT'),
]

STUDENT_NAMES = [
    'Ali Kareem', 'Sara Mahmoud', 'Hussein Jawad', 'Noor Abbas', 'Yousif Adel',
    'Maryam Saad', 'Karrar Hadi', 'Zahraa Qasim', 'Mustafa Riyadh', 'Hiba Salman',
]

DEFAULT_PASSWORD = 'password123'


class SeedService:
    """Service to seed the database with demo data."""

    @staticmethod
    def seed_all(days: int = 5) -> dict:
        """Seed every entity; existing rows are reused, not duplicated."""
        departments = SeedService.seed_departments()
        groups = SeedService.seed_groups(departments)
        doctors = SeedService.seed_doctors(departments, groups)
        students = SeedService.seed_students(groups)
        records = SeedService.seed_attendance(groups, days=days)

        summary = {
            'departments': len(departments),
            'groups': len(groups),
            'doctors': len(doctors),
            'students': len(students),
            'attendance': records
        }
        logger.info('Seeded database: %s', summary)
        return summary

    @staticmethod
    def seed_departments() -> dict:
        departments = {}
        for name, code, description in DEPARTMENTS:
            department = Department.query.filter_by(code=code).first()
            if not department:
                department = Department(name=name, code=code, description=description)
                db.session.add(department)
            departments[code] = department
        db.session.commit()
        return departments

    @staticmethod
    def seed_groups(departments: dict) -> list:
        groups = []
        for code, department in departments.items():
            for year in (1, 2):
                group_code = f"{code}{year}A"
                group = Group.query.filter_by(code=group_code).first()
                if not group:
                    group = Group(
                        name=f"{code} Year {year} - A",
                        code=group_code,
                        department_id=department.id,
                        year=year,
                        semester=1,
                        capacity=30
                    )
                    db.session.add(group)
                groups.append(group)
        db.session.commit()
        return groups

    @staticmethod
    def seed_doctors(departments: dict, groups: list) -> list:
        doctors = []
        for name, username, title, department_code in DOCTORS:
            email = f"{username}@university.edu"
            doctor = User.query.filter_by(email=email).first()
            if not doctor:
                department = departments[department_code]
                doctor = User(
                    email=email,
                    name=name,
                    role=UserRole.DOCTOR,
                    department_id=department.id,
                    profile={'title': title}
                )
                doctor.set_password(DEFAULT_PASSWORD)
                doctor.assigned_groups = [g for g in groups if g.department_id == department.id]
                db.session.add(doctor)
            doctors.append(doctor)
        db.session.commit()
        return doctors

    @staticmethod
    def seed_students(groups: list) -> list:
        students = []
        for group in groups:
            for index, name in enumerate(STUDENT_NAMES[:5] if group.year == 1 else STUDENT_NAMES[5:]):
                student_number = f"{group.code}{index + 1:03d}"
                student = User.query.filter_by(student_number=student_number).first()
                if not student:
                    student = User(
                        email=f"{student_number.lower()}@student.university.edu",
                        name=name,
                        role=UserRole.STUDENT,
                        student_number=student_number,
                        department_id=group.department_id,
                        group_id=group.id,
                        year=group.year
                    )
                    student.set_password(DEFAULT_PASSWORD)
                    db.session.add(student)
                    db.session.flush()
                    QRService.ensure_student_qr(student, commit=False)
                students.append(student)
        db.session.commit()
        return students

    @staticmethod
    def seed_attendance(groups: list, days: int = 5) -> int:
        """One lecture per group per day for the last ``days`` days; days already recorded are skipped."""
        statuses = [AttendanceStatus.PRESENT] * 6 + [AttendanceStatus.LATE, AttendanceStatus.ABSENT,
                                                     AttendanceStatus.EXCUSED]
        created = 0
        today = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)

        for group in groups:
            doctor = group.assigned_doctors[0] if group.assigned_doctors else None
            if doctor is None:
                continue
            for offset in range(1, days + 1):
                lecture_date = today - timedelta(days=offset)
                exists = AttendanceRecord.query.filter_by(
                    group_id=group.id, lecture_day=lecture_date.date()
                ).first()
                if exists:
                    continue
                for student in group.students:
                    db.session.add(AttendanceRecord(
                        student_id=student.id,
                        group_id=group.id,
                        doctor_id=doctor.id,
                        lecture_date=lecture_date,
                        status=random.choice(statuses),
                        recorded_by=RecordSource.MANUAL,
                        subject=f"{group.code} Lecture",
                        lecture_number=offset
                    ))
                    created += 1
        db.session.commit()
        return created
