"""Authenticated landing endpoint."""
from datetime import datetime

from flask import Blueprint, current_app
from flask_jwt_extended import get_current_user, jwt_required

from attendance_app.utils.helpers import success_response

protected_bp = Blueprint('protected', __name__)


@protected_bp.route('/dashboard', methods=['GET'])
@jwt_required()
def dashboard():
    """Welcome payload; uptime is measured from application start on every call."""
    user = get_current_user()
    uptime = datetime.now() - current_app.config['STARTED_AT']

    return success_response(
        data={
            'message': f"Welcome {user.name}",
            'user': user.to_summary(),
            'serverTime': datetime.now().isoformat(),
            'uptimeSeconds': int(uptime.total_seconds())
        }
    )
