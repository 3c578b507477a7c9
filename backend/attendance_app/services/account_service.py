"""Shared helpers for creating and updating accounts of every role."""
import logging
from typing import Dict, Iterable, List, Optional

from attendance_app import db
from attendance_app.models.department import Department
from attendance_app.models.group import Group
from attendance_app.models.user import User, UserRole, ADMIN_PERMISSIONS
from attendance_app.utils.exceptions import ConflictError, ValidationError
from attendance_app.utils.validators import Validator

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('title', 'specialization', 'phone', 'address', 'dateOfBirth', 'gender', 'bio')


class AccountService:

    @staticmethod
    def normalize_email(email: str) -> str:
        return (email or '').lower().strip()

    @staticmethod
    def ensure_email_available(email: str, exclude_id: int = None) -> None:
        query = User.query.filter(User.email == AccountService.normalize_email(email))
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ConflictError("User already exists with this email")

    @staticmethod
    def resolve_department(department_id, field: str = 'department') -> Optional[Department]:
        if department_id in (None, ''):
            return None
        department = db.session.get(Department, _as_int(department_id, field))
        if not department:
            raise ValidationError("Validation failed",
                                  errors=[{'field': field, 'message': 'Department not found'}])
        return department

    @staticmethod
    def resolve_group(group_id, field: str = 'group') -> Optional[Group]:
        if group_id in (None, ''):
            return None
        group = db.session.get(Group, _as_int(group_id, field))
        if not group:
            raise ValidationError("Validation failed",
                                  errors=[{'field': field, 'message': 'Group not found'}])
        return group

    @staticmethod
    def resolve_groups(group_ids: Iterable, field: str = 'assignedGroups') -> List[Group]:
        ids = {_as_int(group_id, field) for group_id in (group_ids or []) if group_id not in (None, '')}
        if not ids:
            return []
        groups = Group.query.filter(Group.id.in_(ids)).all()
        missing = ids - {group.id for group in groups}
        if missing:
            raise ValidationError(
                "Validation failed",
                errors=[{'field': field, 'message': f"Groups not found: {sorted(missing)}"}]
            )
        return groups

    @staticmethod
    def clean_profile(profile: Optional[Dict]) -> Dict:
        if not profile:
            return {}
        if not isinstance(profile, dict):
            raise ValidationError("Validation failed",
                                  errors=[{'field': 'profile', 'message': 'profile must be an object'}])
        return {key: value for key, value in profile.items() if key in PROFILE_FIELDS}

    @staticmethod
    def apply_common_fields(user: User, data: Dict) -> None:
        """Fields every role shares: name, email, phone, avatar, profile, active flag, password."""
        if 'name' in data:
            user.name = data['name'].strip()
        if 'email' in data:
            AccountService.ensure_email_available(data['email'], exclude_id=user.id)
            user.email = AccountService.normalize_email(data['email'])
        if 'phone' in data:
            user.phone = data['phone']
        if 'avatar' in data:
            user.avatar = data['avatar']
        if 'profile' in data:
            profile = dict(user.profile or {})
            profile.update(AccountService.clean_profile(data['profile']))
            user.profile = profile
        if 'isActive' in data:
            user.is_active = bool(data['isActive'])
        if data.get('password'):
            user.set_password(data['password'])

    @staticmethod
    def validate_account(data: Dict, partial: bool = False) -> Validator:
        validator = Validator(data)
        validator.string('name', min_length=2, max_length=50, required=not partial)
        validator.email('email', required=not partial)
        validator.password('password', required=not partial)
        return validator

    @staticmethod
    def create_admin(data: Dict) -> User:
        validator = AccountService.validate_account(data)
        validator.list_of('permissions')
        validator.choice('adminRole', [UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value])
        validator.validate()

        permissions = data.get('permissions') or []
        unknown = [p for p in permissions if p not in ADMIN_PERMISSIONS]
        if unknown:
            raise ValidationError(
                "Validation failed",
                errors=[{'field': 'permissions', 'message': f"Unknown permissions: {', '.join(unknown)}"}]
            )

        AccountService.ensure_email_available(data['email'])

        admin = User(
            email=AccountService.normalize_email(data['email']),
            name=data['name'].strip(),
            role=UserRole(data.get('adminRole') or UserRole.ADMIN.value),
            permissions=permissions,
            profile=AccountService.clean_profile(data.get('profile'))
        )
        admin.set_password(data['password'])
        db.session.add(admin)
        db.session.commit()

        logger.info('Created %s account %s', admin.role.value, admin.email)
        return admin


def _as_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Validation failed",
                              errors=[{'field': field, 'message': f"{field} must be a valid id"}])
