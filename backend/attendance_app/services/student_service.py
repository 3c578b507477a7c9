"""Student management service."""
import io
import logging
import time
from typing import Dict, List

import pandas as pd

from attendance_app import db
from attendance_app.models.user import User, UserRole
from attendance_app.services.account_service import AccountService
from attendance_app.services.qr_service import QRService
from attendance_app.utils.exceptions import APIError, ConflictError, ValidationError

logger = logging.getLogger(__name__)

BULK_REQUIRED_COLUMNS = ['name', 'email', 'password']


class StudentService:
    """Service for managing students."""

    @staticmethod
    def generate_student_number() -> str:
        """``STU`` followed by the current epoch milliseconds, bumped until unused."""
        sequence = int(time.time() * 1000)
        while User.query.filter_by(student_number=f"STU{sequence}").first():
            sequence += 1
        return f"STU{sequence}"

    @staticmethod
    def _validate(data: Dict, partial: bool = False) -> None:
        validator = AccountService.validate_account(data, partial=partial)
        validator.string('studentNumber', min_length=1, max_length=50)
        validator.integer('year', min_value=1, max_value=6)
        validator.validate()

    @staticmethod
    def _apply_academic_fields(student: User, data: Dict) -> None:
        if 'department' in data:
            department = AccountService.resolve_department(data['department'])
            student.department_id = department.id if department else None
        if 'group' in data:
            group = AccountService.resolve_group(data['group'])
            student.group_id = group.id if group else None
            if group and student.department_id is None:
                student.department_id = group.department_id
        if student.group_id and student.department_id:
            group = AccountService.resolve_group(student.group_id)
            if group.department_id != student.department_id:
                raise ValidationError(
                    "Validation failed",
                    errors=[{'field': 'group', 'message': 'Group does not belong to the department'}]
                )
        if 'year' in data and data['year'] not in (None, ''):
            student.year = int(data['year'])

    @staticmethod
    def create_student(data: Dict, commit: bool = True) -> User:
        """Create a student account and its QR payload."""
        StudentService._validate(data)
        AccountService.ensure_email_available(data['email'])

        student_number = (data.get('studentNumber') or '').strip() or StudentService.generate_student_number()
        if User.query.filter_by(student_number=student_number).first():
            raise ConflictError("Student number already exists")

        student = User(
            email=AccountService.normalize_email(data['email']),
            name=data['name'].strip(),
            role=UserRole.STUDENT,
            student_number=student_number,
            year=1,
            phone=data.get('phone'),
            profile=AccountService.clean_profile(data.get('profile'))
        )
        student.set_password(data['password'])
        StudentService._apply_academic_fields(student, data)

        # The payload needs the row id, so flush before minting it
        db.session.add(student)
        db.session.flush()
        student.qr_code = QRService.generate_student_qr_data(student.id, student.student_number)

        if commit:
            db.session.commit()

        logger.info('Created student %s (%s)', student.email, student.student_number)
        return student

    @staticmethod
    def update_student(student: User, data: Dict) -> User:
        StudentService._validate(data, partial=True)

        AccountService.apply_common_fields(student, data)

        new_number = (data.get('studentNumber') or '').strip()
        if new_number and new_number != student.student_number:
            if User.query.filter(User.student_number == new_number, User.id != student.id).first():
                raise ConflictError("Student number already exists")
            student.student_number = new_number

        StudentService._apply_academic_fields(student, data)
        QRService.ensure_student_qr(student, commit=False)

        db.session.commit()
        return student

    @staticmethod
    def delete_student(student: User) -> int:
        """Delete a student and its attendance records; returns the number of records removed."""
        email = student.email
        removed = student.attendance_records.delete(synchronize_session=False)
        db.session.delete(student)
        db.session.commit()
        logger.info('Deleted student %s with %d attendance records', email, removed)
        return removed

    @staticmethod
    def regenerate_qr(student: User) -> str:
        student.qr_code = QRService.generate_student_qr_data(student.id, student.student_number)
        db.session.commit()
        return student.qr_code

    @staticmethod
    def read_upload(file) -> pd.DataFrame:
        """Read an uploaded CSV or Excel sheet into a DataFrame."""
        filename = (file.filename or '').lower()
        if not filename.endswith(('.csv', '.xlsx', '.xls')):
            raise ValidationError("Invalid file format. Use CSV or Excel")

        try:
            if filename.endswith('.csv'):
                df = pd.read_csv(io.StringIO(file.stream.read().decode("utf-8")), dtype=str)
            else:
                df = pd.read_excel(file.stream, dtype=str)
        except Exception as e:
            raise ValidationError(f"Error reading file: {str(e)}")

        missing_columns = [col for col in BULK_REQUIRED_COLUMNS if col not in df.columns]
        if missing_columns:
            raise ValidationError(f"Missing columns: {', '.join(missing_columns)}")

        return df.where(pd.notnull(df), None)

    @staticmethod
    def create_students_bulk(df: pd.DataFrame, defaults: Dict = None) -> List[Dict]:
        """Create one student per row; a bad row does not stop the others."""
        results = []
        defaults = defaults or {}

        for index, row in df.iterrows():
            data = dict(defaults)
            data.update({key: value for key, value in row.to_dict().items() if value is not None})

            try:
                student = StudentService.create_student(data)
                results.append({
                    'row': index + 2,  # spreadsheet row number
                    'name': student.name,
                    'success': True,
                    'studentId': student.id,
                    'studentNumber': student.student_number
                })
            except APIError as e:
                db.session.rollback()
                results.append({
                    'row': index + 2,
                    'name': data.get('name', 'Unknown'),
                    'success': False,
                    'error': e.message,
                    'errors': e.errors
                })

        logger.info('Bulk student import: %d rows, %d created',
                    len(results), len([r for r in results if r['success']]))
        return results
