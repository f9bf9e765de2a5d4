from fixify.models.user import db

SUBMITTED = 'Submitted'
PENDING = 'Pending'
IN_PROGRESS = 'In Progress'
RESOLVED = 'Resolved'
ON_HOLD = 'On Hold'
CLOSED = 'Closed'
CLOSED_COMPLETE = 'Closed Complete'
CLOSED_INCOMPLETE = 'Closed Incomplete'

# (id, status_name) rows; Resolved keeps internal code 4
STATUS_SEED = [
    (1, SUBMITTED),
    (2, PENDING),
    (3, IN_PROGRESS),
    (4, RESOLVED),
    (5, ON_HOLD),
    (6, CLOSED_COMPLETE),
    (7, CLOSED_INCOMPLETE),
]

INDIVIDUAL = 1
SHARED = 2

GROUP_SEED = ['Electrical', 'Carpentry', 'Plumbing', 'Housekeeping', 'General Maintenance']

# (name, category_id, default assignment group)
FACILITY_TYPE_SEED = [
    ('Ceiling fan', INDIVIDUAL, 'Electrical'),
    ('Key', INDIVIDUAL, 'General Maintenance'),
    ('Table lamp', INDIVIDUAL, 'Electrical'),
    ('Ceiling light', INDIVIDUAL, 'Electrical'),
    ('Furniture', INDIVIDUAL, 'Carpentry'),
    ('Electrical socket / Power Connection', INDIVIDUAL, 'Electrical'),
    ('Other facilities in the room', INDIVIDUAL, 'General Maintenance'),
    ('Study Room', SHARED, 'General Maintenance'),
    ('Bathroom', SHARED, 'Plumbing'),
    ('TV Room', SHARED, 'Electrical'),
    ('Corridor', SHARED, 'Housekeeping'),
    ('Pantry', SHARED, 'Housekeeping'),
    ('Surau / Prayer Room', SHARED, 'Housekeeping'),
    ('Others', SHARED, 'General Maintenance'),
]


class Status(db.Model):
    __tablename__ = 'status'

    id = db.Column(db.Integer, primary_key=True)
    status_name = db.Column(db.String(50), unique=True, nullable=False)

    def to_dict(self):
        return {'id': self.id, 'status_name': self.status_name}

    def __repr__(self):
        return f'<Status {self.id}: {self.status_name}>'


class AssignmentGroup(db.Model):
    __tablename__ = 'assignment_groups'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    def __repr__(self):
        return f'<AssignmentGroup {self.name}>'


class FacilityType(db.Model):
    __tablename__ = 'facility_type'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    category_id = db.Column(db.Integer, nullable=False, default=INDIVIDUAL)  # 1=Individual, 2=Shared
    assignment_group_id = db.Column(db.Integer, db.ForeignKey('assignment_groups.id'), nullable=True)

    assignment_group = db.relationship('AssignmentGroup')

    @property
    def category(self):
        return 'Shared' if self.category_id == SHARED else 'Individual'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category_id': self.category_id,
            'category': self.category,
            'assignment_group': self.assignment_group.name if self.assignment_group else None
        }

    def __repr__(self):
        return f'<FacilityType {self.name} ({self.category})>'


def seed_reference_data():
    """Insert statuses, assignment groups and facility types when the tables are empty."""
    if Status.query.count() == 0:
        for status_id, name in STATUS_SEED:
            db.session.add(Status(id=status_id, status_name=name))

    if AssignmentGroup.query.count() == 0:
        for name in GROUP_SEED:
            db.session.add(AssignmentGroup(name=name))
        db.session.flush()

    if FacilityType.query.count() == 0:
        groups = {g.name: g.id for g in AssignmentGroup.query.all()}
        for name, category_id, group_name in FACILITY_TYPE_SEED:
            db.session.add(FacilityType(
                name=name,
                category_id=category_id,
                assignment_group_id=groups.get(group_name)
            ))

    db.session.commit()
