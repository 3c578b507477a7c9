"""Attendance record model."""
from datetime import datetime
from enum import Enum

from sqlalchemy import event

from attendance_app import db
from attendance_app.models.base import BaseModel


class AttendanceStatus(Enum):
    PRESENT = 'present'
    ABSENT = 'absent'
    LATE = 'late'
    EXCUSED = 'excused'


class RecordSource(Enum):
    """How a record was captured."""
    QR_SCAN = 'qr_scan'
    MANUAL = 'manual'
    ADMIN = 'admin'


def _enum_values(enum_class):
    return [member.value for member in enum_class]


class AttendanceRecord(BaseModel):
    """One student's attendance for one group on one calendar day."""

    __tablename__ = 'attendance_records'
    __table_args__ = (
        # At most one non-absent record per student, group and day
        db.Index(
            'uq_attendance_student_group_day',
            'student_id', 'group_id', 'lecture_day',
            unique=True,
            sqlite_where=db.text("status != 'absent'"),
            postgresql_where=db.text("status != 'absent'"),
        ),
        db.Index('ix_attendance_group_date', 'group_id', 'lecture_date'),
        db.Index('ix_attendance_student_date', 'student_id', 'lecture_date'),
        db.Index('ix_attendance_doctor_date', 'doctor_id', 'lecture_date'),
    )

    student_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    lecture_date = db.Column(db.DateTime, nullable=False)
    lecture_day = db.Column(db.Date, nullable=False)
    status = db.Column(
        db.Enum(AttendanceStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=AttendanceStatus.PRESENT
    )
    recorded_by = db.Column(
        db.Enum(RecordSource, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=RecordSource.QR_SCAN
    )
    recorded_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    # Lecture details
    subject = db.Column(db.String(200), nullable=True)
    lecture_number = db.Column(db.Integer, nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # minutes

    @property
    def lecture_details(self) -> dict:
        return {
            'subject': self.subject,
            'lectureNumber': self.lecture_number,
            'duration': self.duration
        }

    def apply_lecture_details(self, details: dict) -> None:
        """Merge subject / lectureNumber / duration into the record."""
        if not details:
            return
        if 'subject' in details:
            self.subject = details['subject']
        if 'lectureNumber' in details:
            self.lecture_number = details['lectureNumber']
        if 'duration' in details:
            self.duration = details['duration']

    def to_dict(self, exclude: list = None) -> dict:
        exclude = (exclude or []) + ['subject', 'lecture_number', 'duration']
        result = super().to_dict(exclude=exclude)
        result['lecture_details'] = self.lecture_details
        result['student'] = self.student.to_summary() if self.student else None
        result['group'] = self.group.to_summary() if self.group else None
        result['doctor'] = self.doctor.to_summary() if self.doctor else None
        return result

    def __repr__(self):
        return f'<AttendanceRecord {self.student_id}-{self.group_id}-{self.lecture_day}>'


@event.listens_for(AttendanceRecord, 'before_insert')
@event.listens_for(AttendanceRecord, 'before_update')
def _sync_lecture_day(mapper, connection, target):
    if target.lecture_date is not None:
        target.lecture_day = target.lecture_date.date()
