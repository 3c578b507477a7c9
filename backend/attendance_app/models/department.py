"""Department model."""
from attendance_app import db
from attendance_app.models.base import BaseModel


class Department(BaseModel):
    """Academic department owning groups, doctors and students."""

    __tablename__ = 'departments'

    name = db.Column(db.String(100), unique=True, nullable=False)
    code = db.Column(db.String(10), unique=True, nullable=False, index=True)
    description = db.Column(db.String(500), nullable=True)

    groups = db.relationship('Group', backref='department', lazy='dynamic')

    def to_dict(self, exclude: list = None) -> dict:
        result = super().to_dict(exclude=exclude)
        result['groups_count'] = self.groups.count()
        return result

    def __repr__(self) -> str:
        return f'<Department {self.code}>'
