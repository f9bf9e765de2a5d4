"""
Complaint lifecycle.

Owns the status state machine, resolution-evidence gating, assignment
changes and student feedback. Every operation validates locally first and
then performs a single commit; database failures are rolled back and
surfaced as RemoteOperationError.
"""
import logging
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError

from fixify.models.user import db, User
from fixify.models.reference import (
    Status, FacilityType, AssignmentGroup, STATUS_SEED,
    SUBMITTED, PENDING, IN_PROGRESS, RESOLVED, ON_HOLD,
    CLOSED, CLOSED_COMPLETE, CLOSED_INCOMPLETE,
)
from fixify.models.complaint import (
    Complaint, Feedback, ComplaintEvidence, ComplaintComment,
    ComplaintInternalNote, ComplaintStatusLog,
)
from fixify.errors import (
    FixifyError, ValidationError, MissingEvidenceError, InvalidStateError,
    DuplicateFeedbackError, ConfirmationRequiredError, RemoteOperationError,
)
from fixify import storage

logger = logging.getLogger(__name__)

TASK_PREFIX = 'TASK'
FIRST_TASK_NUMBER = 10001

MIN_RATING = 1
MAX_RATING = 5

ALLOWED_TRANSITIONS = {
    SUBMITTED: {PENDING},
    PENDING: {IN_PROGRESS},
    IN_PROGRESS: {ON_HOLD, RESOLVED, CLOSED_COMPLETE, CLOSED_INCOMPLETE},
    ON_HOLD: {IN_PROGRESS, RESOLVED, CLOSED_COMPLETE, CLOSED_INCOMPLETE},
}

# States that carry a resolved_at timestamp and accept feedback
RESOLVED_STATES = frozenset({RESOLVED, CLOSED_COMPLETE})

# Exact, case-sensitive names; "Closed" is a legacy name kept for filtering
TERMINAL_STATES = frozenset({RESOLVED, CLOSED, CLOSED_COMPLETE, CLOSED_INCOMPLETE})

KNOWN_STATES = frozenset(name for _, name in STATUS_SEED)


def _reachable_from(state):
    seen = set()
    pending = list(ALLOWED_TRANSITIONS.get(state, ()))
    while pending:
        nxt = pending.pop()
        if nxt not in seen:
            seen.add(nxt)
            pending.extend(ALLOWED_TRANSITIONS.get(nxt, ()))
    return frozenset(seen)


# Any later state along the edges above, e.g. Submitted -> In Progress
REACHABLE_STATES = {state: _reachable_from(state) for state in ALLOWED_TRANSITIONS}


def is_terminal(complaint):
    return complaint.status_name in TERMINAL_STATES


def is_resolved(complaint):
    return complaint.status_name in RESOLVED_STATES


def _commit(action):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise RemoteOperationError(f'Failed to {action}') from e


def _status(name):
    status = Status.query.filter_by(status_name=name).first()
    if status is None:
        raise RemoteOperationError(f'Status "{name}" is not configured')
    return status


def generate_task_id():
    """Generate unique task ID in format TASK10001"""
    last_complaint = Complaint.query.filter(
        Complaint.task_id.like(f'{TASK_PREFIX}%')
    ).order_by(Complaint.id.desc()).first()

    if last_complaint:
        new_number = int(last_complaint.task_id[len(TASK_PREFIX):]) + 1
    else:
        new_number = FIRST_TASK_NUMBER

    return f'{TASK_PREFIX}{new_number}'


def resolve_facility_type(facility_type):
    """Look up a facility type by id or display name."""
    if facility_type is None or str(facility_type).strip() == '':
        raise ValidationError('Facility type is required')

    value = str(facility_type).strip()
    if value.isdigit():
        found = db.session.get(FacilityType, int(value))
    else:
        found = FacilityType.query.filter_by(name=value).first()

    if found is None:
        raise ValidationError(f'Unknown facility type: {value}')
    return found


def create_complaint(facility_type, description, user, image=None):
    if not description or not description.strip():
        raise ValidationError('Description is required')
    facility = resolve_facility_type(facility_type)
    submitted = _status(SUBMITTED)

    task_id = generate_task_id()
    image_path = image_url = None
    if image is not None and image.filename:
        image_path = storage.upload(image, 'complaints', task_id)
        image_url = storage.get_public_url(image_path)

    complaint = Complaint(
        task_id=task_id,
        user_id=user.id,
        facility_type=facility,
        description=description.strip(),
        status=submitted,
        assignment_group_id=facility.assignment_group_id,
        image_url=image_url,
        created_at=datetime.utcnow(),
        feedback=False
    )
    db.session.add(complaint)
    try:
        _commit('create complaint')
    except RemoteOperationError:
        if image_path:
            storage.remove(image_path)
        raise

    logger.info(f"Complaint {complaint.task_id} submitted by user {user.id} ({facility.name})")
    return complaint


def _check_transition(complaint, new_status, confirmed):
    current = complaint.status_name
    if new_status == current or new_status not in REACHABLE_STATES.get(current, frozenset()):
        raise InvalidStateError(f'Cannot change status from {current} to {new_status}')
    if new_status == CLOSED_INCOMPLETE and not confirmed:
        raise ConfirmationRequiredError(
            f'Closing {complaint.task_id} as incomplete must be confirmed'
        )


def transition_status(complaint, new_status, actor, confirmed=False):
    if not new_status:
        raise ValidationError('Status is required')
    if new_status not in KNOWN_STATES:
        raise ValidationError(f'Unknown status: {new_status}')
    if new_status in RESOLVED_STATES and not complaint.evidence:
        raise MissingEvidenceError('Please upload evidence to resolve the incident.')
    _check_transition(complaint, new_status, confirmed)

    previous = complaint.status
    target = _status(new_status)

    db.session.add(ComplaintStatusLog(
        complaint_id=complaint.id,
        previous_status_id=previous.id if previous else None,
        new_status_id=target.id,
        changed_by=actor.id,
        created_at=datetime.utcnow()
    ))
    complaint.status = target
    complaint.resolved_at = datetime.utcnow() if new_status in RESOLVED_STATES else None
    complaint.updated_by = actor.id
    _commit('update complaint status')

    logger.info(
        f"Complaint {complaint.task_id}: {previous.status_name if previous else '-'} -> "
        f"{new_status} by user {actor.id}"
    )
    return complaint


def _store_evidence(complaint, file, actor):
    path = storage.upload(file, 'evidence', complaint.task_id)
    evidence = ComplaintEvidence(
        complaint_id=complaint.id,
        url=storage.get_public_url(path),
        uploaded_by=actor.id,
        created_at=datetime.utcnow()
    )
    complaint.evidence.append(evidence)
    return evidence, path


def attach_evidence(complaint, file, actor):
    if is_terminal(complaint):
        raise InvalidStateError(f'{complaint.task_id} is closed')
    evidence, path = _store_evidence(complaint, file, actor)
    try:
        _commit('attach evidence')
    except RemoteOperationError:
        storage.remove(path)
        raise
    return evidence


def resolve(complaint, actor, files):
    """Upload evidence and move the complaint to Resolved in one step."""
    files = [f for f in (files or []) if f is not None and f.filename]
    if not files and not complaint.evidence:
        raise MissingEvidenceError('Please upload evidence to resolve the incident.')
    _check_transition(complaint, RESOLVED, confirmed=True)

    stored = []
    try:
        for file in files:
            stored.append(_store_evidence(complaint, file, actor)[1])
        return transition_status(complaint, RESOLVED, actor)
    except FixifyError:
        # Nothing was committed, so the files have no rows pointing at them
        db.session.rollback()
        for path in stored:
            storage.remove(path)
        raise


def assign(complaint, group, staff_member, actor):
    """Change assignment group and assignee; status is untouched."""
    if is_terminal(complaint):
        raise InvalidStateError(f'{complaint.task_id} is closed and can no longer be reassigned')
    if group is None or str(group).strip() == '':
        raise ValidationError('Assignment group is required')

    value = str(group).strip()
    if value.isdigit():
        target_group = db.session.get(AssignmentGroup, int(value))
    else:
        target_group = AssignmentGroup.query.filter_by(name=value).first()
    if target_group is None:
        raise ValidationError(f'Unknown assignment group: {value}')

    assignee = None
    if staff_member is not None:
        if isinstance(staff_member, User):
            assignee = staff_member
        elif str(staff_member).isdigit():
            assignee = db.session.get(User, int(staff_member))
        if assignee is None or assignee.role != 'staff':
            raise ValidationError('Assignee must be a staff member')
        if not assignee.staff or assignee.staff.assigned_group != target_group.name:
            raise ValidationError(f'{assignee.full_name} is not in group {target_group.name}')

    complaint.assignment_group = target_group
    complaint.assigned_to = assignee.id if assignee else None
    complaint.updated_by = actor.id
    _commit('update assignment')

    logger.info(
        f"Complaint {complaint.task_id} assigned to group {target_group.name}"
        f" / staff {assignee.id if assignee else 'unassigned'} by user {actor.id}"
    )
    return complaint


def _parse_rating(rating):
    if isinstance(rating, str) and rating.strip().isdigit():
        rating = int(rating.strip())
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError('Rating must be a whole number between 1 and 5')
    if not (MIN_RATING <= rating <= MAX_RATING):
        raise ValidationError('Rating must be between 1 and 5')
    return rating


def submit_feedback(complaint, rating, comment, student):
    if not is_resolved(complaint):
        raise InvalidStateError('Feedback can only be given once the complaint is resolved')
    rating = _parse_rating(rating)
    if complaint.feedback or complaint.feedback_entry is not None:
        raise DuplicateFeedbackError(f'Feedback for {complaint.task_id} was already submitted')

    entry = Feedback(
        complaint_id=complaint.id,
        student_id=student.id,
        rating=rating,
        comments=(comment or '').strip(),
        created_at=datetime.utcnow()
    )
    db.session.add(entry)
    complaint.feedback_entry = entry
    complaint.feedback = True
    _commit('submit feedback')

    logger.info(f"Feedback {rating}/5 recorded for complaint {complaint.task_id}")
    return entry


def add_comment(complaint, user, text):
    if not text or not text.strip():
        raise ValidationError('Comment cannot be empty')
    comment = ComplaintComment(
        complaint_id=complaint.id,
        user_id=user.id,
        comment=text.strip(),
        created_at=datetime.utcnow()
    )
    db.session.add(comment)
    _commit('add comment')
    return comment


def add_work_note(complaint, staff, text):
    if not text or not text.strip():
        raise ValidationError('Work note cannot be empty')
    note = ComplaintInternalNote(
        complaint_id=complaint.id,
        staff_id=staff.id,
        note=text.strip(),
        created_at=datetime.utcnow()
    )
    db.session.add(note)
    _commit('add work note')
    return note


def complaint_history(complaint):
    """Comments, internal notes and status changes, newest first."""
    def newest_first(rows):
        return sorted(rows, key=lambda r: r.created_at or datetime.min, reverse=True)

    return {
        'comments': [c.to_dict() for c in newest_first(complaint.comments)],
        'notes': [n.to_dict() for n in newest_first(complaint.notes)],
        'logs': [l.to_dict() for l in newest_first(complaint.status_logs)]
    }
