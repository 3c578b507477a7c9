"""Group (class section) model."""
from attendance_app import db
from attendance_app.models.base import BaseModel


class Group(BaseModel):
    """A cohort of students inside a department for one study year."""

    __tablename__ = 'groups'
    __table_args__ = (
        db.UniqueConstraint('name', 'department_id', 'year', name='uq_group_name_department_year'),
    )

    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey('departments.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    semester = db.Column(db.Integer, nullable=False, default=1)
    capacity = db.Column(db.Integer, nullable=False, default=30)

    attendance_records = db.relationship('AttendanceRecord', backref='group', lazy='dynamic')

    def to_summary(self) -> dict:
        return {'id': self.id, 'name': self.name, 'code': self.code}

    def to_dict(self, exclude: list = None, include_students: bool = False) -> dict:
        """Convert to dictionary with department and doctor references."""
        result = super().to_dict(exclude=exclude)
        result['department'] = {
            'id': self.department.id,
            'name': self.department.name,
            'code': self.department.code
        } if self.department else None
        result['assigned_doctors'] = [doctor.to_summary() for doctor in self.assigned_doctors]
        result['students_count'] = self.students.count()

        if include_students:
            from attendance_app.models.user import User
            result['students'] = [student.to_summary() for student in self.students.order_by(User.name)]

        return result

    def __repr__(self) -> str:
        return f'<Group {self.code}>'
