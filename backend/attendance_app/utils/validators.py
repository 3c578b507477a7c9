"""Validation utilities for the application."""
import re
from typing import Any, Dict, Iterable, List

from attendance_app.utils.exceptions import ValidationError

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
MIN_PASSWORD_LENGTH = 6


class Validator:
    """Collects field errors for one request body and raises them together."""

    def __init__(self, data: Dict[str, Any]):
        self.data = data or {}
        self.errors: List[Dict[str, str]] = []

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        if not email or not isinstance(email, str):
            return False
        return bool(re.match(EMAIL_PATTERN, email.strip()))

    @staticmethod
    def validate_password(password: str) -> Dict[str, Any]:
        """Validate password strength."""
        errors = []

        if not password:
            errors.append("Password is required")
        elif len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        elif len(password) > 128:
            errors.append("Password is too long")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    def add(self, field: str, message: str) -> 'Validator':
        self.errors.append({'field': field, 'message': message})
        return self

    def _present(self, field: str) -> bool:
        value = self.data.get(field)
        return value is not None and not (isinstance(value, str) and not value.strip())

    def required(self, *fields: str) -> 'Validator':
        for field in fields:
            if not self._present(field):
                self.add(field, f"{field} is required")
        return self

    def email(self, field: str = 'email', required: bool = True) -> 'Validator':
        if not self._present(field):
            if required:
                self.add(field, "Please provide a valid email")
        elif not self.validate_email(self.data[field]):
            self.add(field, "Please provide a valid email")
        return self

    def password(self, field: str = 'password', required: bool = True) -> 'Validator':
        if not self._present(field) and not required:
            return self
        result = self.validate_password(self.data.get(field))
        for message in result['errors']:
            self.add(field, message)
        return self

    def string(self, field: str, min_length: int = 0, max_length: int = None,
               required: bool = False) -> 'Validator':
        if not self._present(field):
            if required:
                self.add(field, f"{field} is required")
            return self

        value = self.data[field]
        if not isinstance(value, str):
            return self.add(field, f"{field} must be a string")

        length = len(value.strip())
        if length < min_length or (max_length is not None and length > max_length):
            if max_length is None:
                self.add(field, f"{field} must be at least {min_length} characters")
            else:
                self.add(field, f"{field} must be between {min_length} and {max_length} characters")
        return self

    def integer(self, field: str, min_value: int = None, max_value: int = None,
                required: bool = False) -> 'Validator':
        if not self._present(field):
            if required:
                self.add(field, f"{field} is required")
            return self

        value = self.data[field]
        try:
            number = int(value)
        except (TypeError, ValueError):
            return self.add(field, f"{field} must be an integer")
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            return self.add(field, f"{field} must be an integer")

        if (min_value is not None and number < min_value) or (max_value is not None and number > max_value):
            self.add(field, f"{field} must be between {min_value} and {max_value}")
        return self

    def choice(self, field: str, choices: Iterable[str], required: bool = False) -> 'Validator':
        choices = list(choices)
        if not self._present(field):
            if required:
                self.add(field, f"{field} is required")
            return self
        if self.data[field] not in choices:
            self.add(field, f"{field} must be one of: {', '.join(choices)}")
        return self

    def list_of(self, field: str, required: bool = False) -> 'Validator':
        if field not in self.data or self.data[field] is None:
            if required:
                self.add(field, f"{field} is required")
            return self
        if not isinstance(self.data[field], list):
            self.add(field, f"{field} must be a list")
        return self

    def validate(self) -> Dict[str, Any]:
        """Raise ValidationError with every collected field error."""
        if self.errors:
            raise ValidationError("Validation failed", errors=self.errors)
        return self.data
