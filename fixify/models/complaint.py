from fixify.models.user import db
from fixify.models.reference import SHARED
from datetime import datetime


class Complaint(db.Model):
    __tablename__ = 'complaints'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.String(20), unique=True, nullable=False)  # e.g., TASK10001
    description = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.String(255), nullable=True)

    # References
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False)
    facility_type_id = db.Column(db.Integer, db.ForeignKey('facility_type.id'), nullable=False)
    status_id = db.Column(db.Integer, db.ForeignKey('status.id'), nullable=False)
    assignment_group_id = db.Column(db.Integer, db.ForeignKey('assignment_groups.id'), nullable=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    resolved_at = db.Column(db.DateTime, nullable=True)

    # Set once the submitting student has rated the resolution
    feedback = db.Column(db.Boolean, nullable=False, default=False)

    submitter = db.relationship('User', foreign_keys=[user_id])
    assignee = db.relationship('User', foreign_keys=[assigned_to])
    facility_type = db.relationship('FacilityType')
    status = db.relationship('Status')
    assignment_group = db.relationship('AssignmentGroup')

    evidence = db.relationship('ComplaintEvidence', backref='complaint', order_by='ComplaintEvidence.created_at')
    comments = db.relationship('ComplaintComment', backref='complaint')
    notes = db.relationship('ComplaintInternalNote', backref='complaint')
    status_logs = db.relationship('ComplaintStatusLog', backref='complaint')
    feedback_entry = db.relationship('Feedback', uselist=False, backref='complaint')

    @property
    def status_name(self):
        return self.status.status_name if self.status else None

    @property
    def facility_name(self):
        return self.facility_type.name if self.facility_type else None

    @property
    def category(self):
        if self.facility_type and self.facility_type.category_id == SHARED:
            return 'Shared'
        return 'Individual'

    def to_dict(self):
        submitter = self.submitter
        student = submitter.student if submitter else None

        return {
            'id': self.id,
            'task_id': self.task_id,
            'category': self.category,
            'facility_type': self.facility_name,
            'facility_type_id': self.facility_type_id,
            'description': self.description,
            'status': self.status_name,
            'status_id': self.status_id,
            'image_url': self.image_url,
            'student_name': submitter.full_name if submitter else None,
            'phone': submitter.phone if submitter else None,
            'email': submitter.email if submitter else None,
            'room_no': student.room_no if student else None,
            'hostel_block': student.hostel_block if student else None,
            'assignment_group': self.assignment_group.name if self.assignment_group else 'Unassigned',
            'assignment_group_id': self.assignment_group_id,
            'assigned_to': self.assignee.full_name if self.assignee else 'Unassigned',
            'assigned_to_id': self.assigned_to,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
            'evidence': [e.url for e in self.evidence],
            'feedback': bool(self.feedback)
        }

    def __repr__(self):
        return f'<Complaint {self.task_id}: {self.status_name}>'


class Feedback(db.Model):
    __tablename__ = 'feedback'

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(db.Integer, db.ForeignKey('complaints.id'), unique=True, nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False)
    rating = db.Column(db.Integer, nullable=False)  # 1-5
    comments = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'complaint_id': self.complaint_id,
            'rating': self.rating,
            'comments': self.comments,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class ComplaintEvidence(db.Model):
    __tablename__ = 'complaint_evidence'

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(db.Integer, db.ForeignKey('complaints.id'), nullable=False)
    url = db.Column(db.String(255), nullable=False)
    uploaded_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class ComplaintComment(db.Model):
    __tablename__ = 'complaint_comments'

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(db.Integer, db.ForeignKey('complaints.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False)
    comment = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    author = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user_name': self.author.full_name if self.author else 'Unknown',
            'comment': self.comment,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class ComplaintInternalNote(db.Model):
    __tablename__ = 'complaint_internal_notes'

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(db.Integer, db.ForeignKey('complaints.id'), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False)
    note = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    author = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'staff_name': self.author.full_name if self.author else 'Unknown',
            'note': self.note,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class ComplaintStatusLog(db.Model):
    __tablename__ = 'complaint_status_logs'

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(db.Integer, db.ForeignKey('complaints.id'), nullable=False)
    previous_status_id = db.Column(db.Integer, db.ForeignKey('status.id'), nullable=True)
    new_status_id = db.Column(db.Integer, db.ForeignKey('status.id'), nullable=False)
    changed_by = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    old_status = db.relationship('Status', foreign_keys=[previous_status_id])
    new_status = db.relationship('Status', foreign_keys=[new_status_id])
    changer = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'old_status': self.old_status.status_name if self.old_status else '-',
            'new_status': self.new_status.status_name if self.new_status else '-',
            'changed_by': self.changer.full_name if self.changer else 'System',
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
