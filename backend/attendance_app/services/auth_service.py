"""Authentication service: credential checks, lockout and token issuance."""
import logging
from datetime import datetime, timedelta
from typing import Dict

from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token

from attendance_app import db
from attendance_app.models.user import User
from attendance_app.utils.exceptions import (
    AccountInactiveError, AccountLockedError, InvalidCredentialsError, ValidationError
)
from attendance_app.utils.validators import Validator

logger = logging.getLogger(__name__)


class AuthService:

    @staticmethod
    def _max_attempts() -> int:
        return current_app.config.get('MAX_LOGIN_ATTEMPTS', 5)

    @staticmethod
    def _lock_duration() -> timedelta:
        return timedelta(minutes=current_app.config.get('ACCOUNT_LOCK_MINUTES', 30))

    @staticmethod
    def find_by_email(email: str) -> User:
        return User.query.filter_by(email=(email or '').lower().strip()).first()

    @staticmethod
    def is_account_locked(user: User, now: datetime = None) -> bool:
        return user.is_locked(AuthService._max_attempts(), now)

    @staticmethod
    def handle_failed_login(user: User, now: datetime = None) -> None:
        """Count a bad password; lock the account once the limit is reached."""
        now = now or datetime.utcnow()
        user.login_attempts = (user.login_attempts or 0) + 1

        if user.login_attempts >= AuthService._max_attempts():
            user.lock_until = now + AuthService._lock_duration()
            logger.warning('Account %s locked until %s after %d failed attempts',
                           user.email, user.lock_until.isoformat(), user.login_attempts)

        db.session.commit()

    @staticmethod
    def handle_successful_login(user: User, now: datetime = None) -> None:
        user.login_attempts = 0
        user.lock_until = None
        user.last_login_at = now or datetime.utcnow()
        db.session.commit()

    @staticmethod
    def create_tokens(user: User) -> Dict[str, str]:
        """Access and refresh tokens carrying the role and email claims."""
        claims = {'role': user.role.value, 'email': user.email}
        return {
            'token': create_access_token(identity=str(user.id), additional_claims=claims),
            'refreshToken': create_refresh_token(identity=str(user.id), additional_claims=claims)
        }

    @staticmethod
    def login(email: str, password: str, now: datetime = None) -> Dict:
        """Authenticate user and return tokens.

        Raises InvalidCredentialsError, AccountLockedError or AccountInactiveError.
        """
        Validator({'email': email, 'password': password}) \
            .email().string('password', min_length=1, required=True).validate()

        user = AuthService.find_by_email(email)

        if not user:
            raise InvalidCredentialsError()

        if AuthService.is_account_locked(user, now):
            raise AccountLockedError()

        if not user.is_active:
            raise AccountInactiveError()

        if not user.check_password(password):
            AuthService.handle_failed_login(user, now)
            raise InvalidCredentialsError()

        AuthService.handle_successful_login(user, now)
        logger.info('User %s logged in', user.email)

        result = AuthService.create_tokens(user)
        result['user'] = user.to_dict()
        return result

    @staticmethod
    def refresh(user: User) -> Dict:
        """Re-issue tokens from the current account state."""
        if not user or not user.is_active:
            raise InvalidCredentialsError("Invalid refresh token")

        result = AuthService.create_tokens(user)
        result['user'] = user.to_dict()
        return result

    @staticmethod
    def change_password(user: User, current_password: str, new_password: str) -> None:
        Validator({'currentPassword': current_password, 'newPassword': new_password}) \
            .required('currentPassword').password('newPassword').validate()

        if not user.check_password(current_password):
            raise ValidationError("Current password is incorrect")

        if new_password == current_password:
            raise ValidationError("New password must be different from current password")

        user.set_password(new_password)
        db.session.commit()
        logger.info('Password changed for %s', user.email)
