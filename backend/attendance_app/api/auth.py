"""Authentication API: login, registration, profile and token refresh."""
from flask import Blueprint, current_app
from flask_jwt_extended import (
    get_current_user, jwt_required, set_access_cookies, set_refresh_cookies, unset_jwt_cookies
)

from attendance_app import limiter
from attendance_app.models.user import UserRole
from attendance_app.services.account_service import AccountService
from attendance_app.services.auth_service import AuthService
from attendance_app.services.doctor_service import DoctorService
from attendance_app.services.student_service import StudentService
from attendance_app.utils.decorators import admin_required
from attendance_app.utils.exceptions import ValidationError
from attendance_app.utils.helpers import get_json_body, success_response

auth_bp = Blueprint("auth", __name__)

REGISTER_ROLES = ('student', 'doctor', 'admin')


@auth_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return success_response(message="Auth service is running")


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    """Log in any role; the access token is also set as the ``token`` cookie."""
    data = get_json_body()

    result = AuthService.login(data.get("email", ""), data.get("password", ""))

    response, status = success_response(message="Authentication successful", **result)

    days = current_app.config['REMEMBER_ME_DAYS'] if data.get("rememberMe") else \
        current_app.config['JWT_ACCESS_TOKEN_EXPIRES'].days or 1
    set_access_cookies(response, result['token'], max_age=days * 24 * 60 * 60)
    set_refresh_cookies(response, result['refreshToken'])

    return response, status


@auth_bp.route("/register", methods=["POST"])
@jwt_required()
@admin_required
def register():
    """Create an account of any role (admin only)."""
    data = get_json_body()

    role = data.get("role")
    if role not in REGISTER_ROLES:
        raise ValidationError(
            "Validation failed",
            errors=[{'field': 'role', 'message': 'Invalid role specified'}]
        )

    additional = data.get("additionalData") or {}
    if not isinstance(additional, dict):
        raise ValidationError("additionalData must be an object")

    payload = dict(additional)
    payload.update({key: data.get(key) for key in ('email', 'password', 'name')})

    if role == UserRole.STUDENT.value:
        user = StudentService.create_student(payload)
    elif role == UserRole.DOCTOR.value:
        user = DoctorService.create_doctor(payload)
    else:
        user = AccountService.create_admin(payload)

    return success_response(
        message="User registered successfully",
        status_code=201,
        user=user.to_dict()
    )


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Clear the auth cookies."""
    response, status = success_response(message="Logged out successfully")
    unset_jwt_cookies(response)
    return response, status


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def get_current_user_profile():
    """Get current user profile."""
    return success_response(user=get_current_user().to_dict())


@auth_bp.route("/change-password", methods=["POST"])
@jwt_required()
def change_password():
    """Change password for authenticated user."""
    data = get_json_body()

    AuthService.change_password(
        get_current_user(),
        data.get("currentPassword", ""),
        data.get("newPassword", "")
    )

    return success_response(message="Password changed successfully")


@auth_bp.route("/refresh-token", methods=["POST"])
@jwt_required(refresh=True, locations=['json', 'cookies', 'headers'])
def refresh_token():
    """Issue fresh tokens from a still-valid refresh token."""
    result = AuthService.refresh(get_current_user())

    response, status = success_response(message="Authentication successful", **result)
    set_access_cookies(response, result['token'])
    return response, status
