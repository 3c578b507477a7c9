"""Student QR payload generation and validation service.

A student's QR code encodes a small JSON document::

    {"type": "student_attendance", "studentId": 12, "studentNumber": "STU...",
     "generatedAt": 1709280000000, "uniqueId": "<uuid4>"}

The payload is not signed. Scans re-resolve the student from ``studentId``
and cross-check ``studentNumber`` against the database row.
"""
import base64
import io
import json
import logging
import time
import uuid
from typing import Dict, Optional

import qrcode
from flask import current_app

from attendance_app import db
from attendance_app.utils.exceptions import InvalidQRCodeError, QRCodeExpiredError

logger = logging.getLogger(__name__)

QR_TYPE = 'student_attendance'
PLACEHOLDER_STUDENT_IDS = ('', 'temp_id', 'null', 'undefined')
DAY_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class QRService:
    """Service for student QR code operations."""

    @staticmethod
    def generate_student_qr_data(student_id: Optional[int], student_number: str,
                                 now_ms: int = None) -> str:
        """Mint a fresh payload; ``student_id`` may be None before the row exists."""
        return json.dumps({
            'type': QR_TYPE,
            'studentId': student_id,
            'studentNumber': student_number,
            'generatedAt': now_ms if now_ms is not None else _now_ms(),
            'uniqueId': str(uuid.uuid4())
        }, separators=(',', ':'))

    @staticmethod
    def generate_qr_code_base64(data: str) -> str:
        """Render a payload as a PNG data URL."""
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=2,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"

    @staticmethod
    def parse_qr_data(raw) -> Dict:
        """Decode a scanned payload; raises InvalidQRCodeError when it is not ours."""
        if isinstance(raw, dict):
            payload = raw
        else:
            try:
                payload = json.loads(raw)
            except (TypeError, ValueError) as e:
                raise InvalidQRCodeError(f"Invalid QR code data: {e}")

        if not isinstance(payload, dict):
            raise InvalidQRCodeError("Invalid QR code data: payload must be an object")

        if payload.get('type') != QR_TYPE:
            raise InvalidQRCodeError("Invalid QR code data: Invalid QR code type")

        return payload

    @staticmethod
    def validate_qr_code(payload: Dict, now_ms: int = None, max_age_days: int = None) -> bool:
        """Reject payloads older than the configured maximum age."""
        generated_at = payload.get('generatedAt')
        if isinstance(generated_at, bool) or not isinstance(generated_at, (int, float)):
            raise InvalidQRCodeError("Invalid QR code data: missing generation time")

        if max_age_days is None:
            max_age_days = current_app.config.get('QR_CODE_MAX_AGE_DAYS', 365)
        now_ms = now_ms if now_ms is not None else _now_ms()

        if now_ms - generated_at > max_age_days * DAY_MS:
            raise QRCodeExpiredError()

        return True

    @staticmethod
    def extract_student_id(payload: Dict) -> int:
        """Integer student id embedded in a payload."""
        student_id = payload.get('studentId')
        if student_id is None or str(student_id).strip() in PLACEHOLDER_STUDENT_IDS:
            raise InvalidQRCodeError("QR code is not linked to a student")
        try:
            return int(student_id)
        except (TypeError, ValueError):
            raise InvalidQRCodeError("Invalid QR code data: malformed student id")

    @staticmethod
    def needs_regeneration(student) -> bool:
        """True when the stored payload is missing, legacy, malformed, stale or mismatched."""
        raw = student.qr_code
        if not raw or raw.startswith('data:image/'):
            return True

        try:
            payload = QRService.parse_qr_data(raw)
            QRService.validate_qr_code(payload)
            student_id = QRService.extract_student_id(payload)
        except InvalidQRCodeError:
            return True

        if student.id is None or student_id != student.id:
            return True
        return payload.get('studentNumber') != student.student_number

    @staticmethod
    def ensure_student_qr(student, commit: bool = True) -> str:
        """Return a valid payload for ``student``, minting and persisting one if needed."""
        if QRService.needs_regeneration(student):
            logger.info('Regenerating QR payload for student %s (%s)', student.id, student.student_number)
            student.qr_code = QRService.generate_student_qr_data(student.id, student.student_number)
            if commit:
                db.session.commit()
        return student.qr_code

    @staticmethod
    def generate_student_qr_code(student) -> Dict[str, str]:
        """Payload plus rendered image for a student, repairing the payload first."""
        data = QRService.ensure_student_qr(student)
        return {
            'qrCodeData': data,
            'qrCodeImage': QRService.generate_qr_code_base64(data)
        }
