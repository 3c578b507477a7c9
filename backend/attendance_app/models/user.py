"""User model for authentication and authorization."""
from datetime import datetime
from enum import Enum
from typing import Optional

from werkzeug.security import generate_password_hash, check_password_hash

from attendance_app import db
from attendance_app.models.base import BaseModel


class UserRole(Enum):
    """User roles enumeration."""
    STUDENT = 'student'
    DOCTOR = 'doctor'
    ADMIN = 'admin'
    SUPER_ADMIN = 'super_admin'


ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)

DOCTOR_TITLES = ('Dr.', 'Prof.', 'Ass. Prof.', 'Lecturer')

ADMIN_PERMISSIONS = (
    'manage_departments',
    'manage_groups',
    'manage_students',
    'manage_doctors',
    'manage_admins',
    'view_reports',
    'manage_attendance',
)


doctor_groups = db.Table(
    'doctor_groups',
    db.Column('doctor_id', db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    db.Column('group_id', db.Integer, db.ForeignKey('groups.id', ondelete='CASCADE'), primary_key=True),
)


class User(BaseModel):
    """Account for every role; role-specific columns stay null for other roles."""

    __tablename__ = 'users'

    # Basic Information
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.STUDENT, index=True)

    # Security and Authentication
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)
    login_attempts = db.Column(db.Integer, default=0, nullable=False)
    lock_until = db.Column(db.DateTime, nullable=True)

    # Contact / profile
    phone = db.Column(db.String(20), nullable=True)
    avatar = db.Column(db.String(500), nullable=True)
    profile = db.Column(db.JSON, default=dict)

    # Doctor and student
    department_id = db.Column(db.Integer, db.ForeignKey('departments.id'), nullable=True, index=True)

    # Student
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=True, index=True)
    student_number = db.Column(db.String(50), unique=True, nullable=True, index=True)
    year = db.Column(db.Integer, nullable=True)
    qr_code = db.Column(db.String(512), unique=True, nullable=True)

    # Admin
    permissions = db.Column(db.JSON, default=list)

    # Relationships
    department = db.relationship('Department', backref=db.backref('members', lazy='dynamic'))
    group = db.relationship('Group', backref=db.backref('students', lazy='dynamic'))
    assigned_groups = db.relationship(
        'Group',
        secondary=doctor_groups,
        backref=db.backref('assigned_doctors', lazy='select'),
        order_by='Group.name'
    )
    attendance_records = db.relationship(
        'AttendanceRecord',
        foreign_keys='AttendanceRecord.student_id',
        backref='student',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )
    recorded_attendance = db.relationship(
        'AttendanceRecord',
        foreign_keys='AttendanceRecord.doctor_id',
        backref='doctor',
        lazy='dynamic'
    )

    def set_password(self, password: str) -> None:
        """Set user password with hashing."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user's password."""
        return check_password_hash(self.password_hash, password)

    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR

    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def assigned_group_ids(self) -> set:
        """Ids of the groups a doctor may record attendance for."""
        return {group.id for group in self.assigned_groups}

    def is_assigned_to(self, group_id: int) -> bool:
        return group_id in self.assigned_group_ids()

    def is_locked(self, max_attempts: int, now: Optional[datetime] = None) -> bool:
        """Locked while the attempt counter is at the limit and the lock is in the future."""
        if not self.login_attempts or not self.lock_until:
            return False
        now = now or datetime.utcnow()
        return self.login_attempts >= max_attempts and self.lock_until > now

    def to_summary(self) -> dict:
        """Short form used when a user is embedded in another resource."""
        result = {'id': self.id, 'name': self.name, 'email': self.email}
        if self.is_student():
            result['studentNumber'] = self.student_number
        elif self.is_doctor():
            result['title'] = (self.profile or {}).get('title')
        return result

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        default_exclude = ['password_hash', 'login_attempts', 'lock_until', 'qr_code']
        exclude = (exclude or []) + default_exclude

        result = super().to_dict(exclude=exclude)
        result['role'] = self.role.value if self.role else None
        result['profile'] = self.profile or {}

        if self.department is not None:
            result['department'] = {
                'id': self.department.id,
                'name': self.department.name,
                'code': self.department.code
            }

        if self.is_student():
            if self.group is not None:
                result['group'] = {'id': self.group.id, 'name': self.group.name, 'code': self.group.code}
        else:
            for key in ('group_id', 'student_number', 'year'):
                result.pop(key, None)

        if self.is_doctor():
            result['assigned_groups'] = [
                {'id': group.id, 'name': group.name, 'code': group.code, 'year': group.year}
                for group in self.assigned_groups
            ]

        if not self.is_admin():
            result.pop('permissions', None)
        else:
            result['permissions'] = self.permissions or []

        return result

    def __repr__(self) -> str:
        return f'<User {self.email}>'
