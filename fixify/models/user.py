from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime

db = SQLAlchemy()

ROLES = ('student', 'staff', 'admin')


class User(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='student')  # student, staff, admin
    phone = db.Column(db.String(20), nullable=True)
    profile_pic_url = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Role-specific rows share the profile id
    student = db.relationship('Student', uselist=False, backref='profile')
    staff = db.relationship('Staff', uselist=False, backref='profile')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        data = {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'phone': self.phone,
            'profile_pic_url': self.profile_pic_url,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if self.student:
            data['student'] = self.student.to_dict()
        if self.staff:
            data['staff'] = self.staff.to_dict()
        return data

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, db.ForeignKey('profiles.id'), primary_key=True)
    room_no = db.Column(db.String(20), nullable=True)
    hostel_block = db.Column(db.String(50), nullable=True)

    def to_dict(self):
        return {
            'room_no': self.room_no,
            'hostel_block': self.hostel_block
        }


class Staff(db.Model):
    __tablename__ = 'staff'

    id = db.Column(db.Integer, db.ForeignKey('profiles.id'), primary_key=True)
    # Group is referenced by name, resolved to an id when filtering complaints
    assigned_group = db.Column(db.String(100), nullable=True)

    def to_dict(self):
        return {'assigned_group': self.assigned_group}
