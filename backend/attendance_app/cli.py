"""Flask CLI commands."""
import json

import click
from flask.cli import with_appcontext

from attendance_app import db
from attendance_app.utils.exceptions import APIError


def register_cli(app):
    """Attach the management commands to ``app``."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first.')
    @with_appcontext
    def init_db(drop):
        """Create database tables."""
        if drop:
            click.confirm('This will delete all data. Continue?', abort=True)
            db.drop_all()
            click.echo('Dropped all tables.')
        db.create_all()
        click.echo('Database tables created.')

    @app.cli.command('seed-db')
    @click.option('--days', default=5, show_default=True, help='Days of sample attendance.')
    @with_appcontext
    def seed_db(days):
        """Seed departments, groups, doctors, students and sample attendance."""
        from attendance_app.services.seed_service import SeedService, DEFAULT_PASSWORD

        summary = SeedService.seed_all(days=days)
        for key, count in summary.items():
            click.echo(f'{key}: {count}')
        click.echo(f'Seeded accounts use the password "{DEFAULT_PASSWORD}".')

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True)
    @click.option('--name', prompt=True, default='System Administrator')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--super-admin', is_flag=True, help='Create a super admin.')
    @with_appcontext
    def create_admin(email, name, password, super_admin):
        """Create an administrator account."""
        from attendance_app.services.account_service import AccountService

        try:
            admin = AccountService.create_admin({
                'email': email,
                'name': name,
                'password': password,
                'adminRole': 'super_admin' if super_admin else 'admin'
            })
        except APIError as e:
            details = '; '.join(f"{err['field']}: {err['message']}" for err in e.errors or [])
            raise click.ClickException(f'{e.message} {details}'.strip())

        click.echo(f'Created {admin.role.value} {admin.email}')

    @app.cli.command('repair-qr-codes')
    @with_appcontext
    def repair_qr_codes():
        """Regenerate every missing, legacy or stale student QR payload."""
        from attendance_app.models.user import User, UserRole
        from attendance_app.services.qr_service import QRService

        repaired = 0
        students = User.query.filter_by(role=UserRole.STUDENT).all()
        for student in students:
            if QRService.needs_regeneration(student):
                QRService.ensure_student_qr(student, commit=False)
                repaired += 1
        db.session.commit()

        click.echo(f'Checked {len(students)} students, repaired {repaired} QR codes.')

    @app.cli.command('check-student-qr')
    @click.argument('student_number')
    @with_appcontext
    def check_student_qr(student_number):
        """Print a student's stored QR payload and whether it would scan."""
        from attendance_app.models.user import User, UserRole
        from attendance_app.services.qr_service import QRService

        student = User.query.filter_by(student_number=student_number, role=UserRole.STUDENT).first()
        if not student:
            raise click.ClickException(f'No student with number {student_number}')

        click.echo(f'Student: {student.name} (id {student.id})')
        if not student.qr_code:
            click.echo('QR payload: <none>')
        elif student.qr_code.startswith('data:image/'):
            click.echo('QR payload: <legacy image>')
        else:
            try:
                click.echo(json.dumps(json.loads(student.qr_code), indent=2))
            except ValueError:
                click.echo(f'QR payload (unparsed): {student.qr_code}')

        verdict = 'needs regeneration' if QRService.needs_regeneration(student) else 'valid'
        click.echo(f'Verdict: {verdict}')
