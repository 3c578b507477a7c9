"""University Attendance System - Application Factory."""
import logging
import os
from datetime import datetime

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"]
)


def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    app.config['STARTED_AT'] = datetime.now()

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]), supports_credentials=True)

    setup_logging(app)
    register_jwt_callbacks(app)
    register_blueprints(app)
    register_error_handlers(app)
    setup_database(app)
    register_commands(app)

    @app.route('/health')
    def health_check():
        return jsonify({
            'success': True,
            'status': 'healthy',
            'service': 'University Attendance System',
            'version': '1.0.0'
        })

    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from attendance_app.api.auth import auth_bp
    from attendance_app.api.attendance import attendance_bp
    from attendance_app.api.departments import departments_bp
    from attendance_app.api.groups import groups_bp
    from attendance_app.api.doctors import doctors_bp
    from attendance_app.api.students import students_bp
    from attendance_app.api.reports import reports_bp
    from attendance_app.api.protected import protected_bp

    # Auth
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Academic structure
    app.register_blueprint(departments_bp, url_prefix='/api/departments')
    app.register_blueprint(groups_bp, url_prefix='/api/groups')
    app.register_blueprint(doctors_bp, url_prefix='/api/doctors')
    app.register_blueprint(students_bp, url_prefix='/api/students')

    # Core Features
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(reports_bp, url_prefix='/api/reports')
    app.register_blueprint(protected_bp, url_prefix='/api/protected')

    # Swagger UI
    from flask_swagger_ui import get_swaggerui_blueprint
    from attendance_app.utils.swagger import SWAGGER_URL, API_URL, SWAGGER_UI_CONFIG, generate_swagger_spec

    @app.route(API_URL)
    def swagger_spec():
        """Serve Swagger/OpenAPI specification."""
        return jsonify(generate_swagger_spec())

    swaggerui_bp = get_swaggerui_blueprint(SWAGGER_URL, API_URL, config=SWAGGER_UI_CONFIG)
    app.register_blueprint(swaggerui_bp, url_prefix=SWAGGER_URL)


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from werkzeug.exceptions import HTTPException
    from attendance_app.utils.exceptions import APIError
    from attendance_app.utils.helpers import error_response

    @app.errorhandler(APIError)
    def handle_api_error(error):
        db.session.rollback()
        return error_response(error.message, error.status_code, errors=error.errors, data=error.data)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return error_response(error.description, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.exception('Unhandled error: %s', error)
        detail = str(error) if app.debug else None
        return error_response('Internal server error', 500, error=detail)


def register_jwt_callbacks(app: Flask) -> None:
    """Wire flask-jwt-extended to the users table and the response envelope."""
    from attendance_app.models.user import User
    from attendance_app.utils.helpers import error_response

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_payload):
        user = db.session.get(User, int(jwt_payload['sub']))
        if not user or not user.is_active:
            return None
        return user

    @jwt.user_lookup_error_loader
    def user_lookup_error_callback(jwt_header, jwt_payload):
        return error_response('User not found or inactive', 401)

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return error_response('Token expired', 401)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return error_response('Invalid token', 401)

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return error_response('Access token required', 401)


def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'))
    app.logger.setLevel(level)
    logging.getLogger('attendance_app').setLevel(level)

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        logging.getLogger('attendance_app').addHandler(file_handler)

        app.logger.info('University Attendance System startup')


def setup_database(app: Flask) -> None:
    """Import models so metadata is complete before create_all or migrations."""
    with app.app_context():
        from attendance_app.models import (  # noqa: F401
            User, UserRole, Department, Group,
            AttendanceRecord, AttendanceStatus, RecordSource
        )


def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    from attendance_app.cli import register_cli
    register_cli(app)
