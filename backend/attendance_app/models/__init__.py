"""Models package with all models."""
from .base import BaseModel
from .department import Department
from .group import Group
from .user import User, UserRole, ADMIN_ROLES, ADMIN_PERMISSIONS, DOCTOR_TITLES, doctor_groups
from .attendance import AttendanceRecord, AttendanceStatus, RecordSource

__all__ = [
    'BaseModel', 'Department', 'Group',
    'User', 'UserRole', 'ADMIN_ROLES', 'ADMIN_PERMISSIONS', 'DOCTOR_TITLES', 'doctor_groups',
    'AttendanceRecord', 'AttendanceStatus', 'RecordSource'
]
