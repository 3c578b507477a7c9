"""Custom decorators for authorization."""
from functools import wraps

from flask_jwt_extended import get_current_user

from attendance_app.models.user import UserRole, ADMIN_ROLES
from attendance_app.utils.helpers import error_response


def roles_required(*roles: UserRole, message: str = None):
    """Require the authenticated user to hold one of ``roles``.

    Stack below ``@jwt_required()`` so the user is already loaded.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()

            if not user:
                return error_response("User not found", 404)

            if user.role not in roles:
                return error_response(message or "Insufficient permissions", 403)

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Decorator to require admin role."""
    return roles_required(*ADMIN_ROLES, message="Admin access required")(f)


def doctor_required(f):
    """Decorator to require a doctor or an admin."""
    return roles_required(UserRole.DOCTOR, *ADMIN_ROLES, message="Doctor access required")(f)


def student_required(f):
    """Decorator to require student role."""
    return roles_required(UserRole.STUDENT, message="Student access required")(f)


def own_student_resource(f):
    """Students may only reach ``/<student_id>`` routes for themselves."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()

        if user.is_student() and kwargs.get('student_id') != user.id:
            return error_response("Can only access your own data", 403)

        return f(*args, **kwargs)
    return decorated_function
