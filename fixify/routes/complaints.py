import logging
from flask import Blueprint, request, jsonify, g

from fixify.models.reference import Status, FacilityType, AssignmentGroup
from fixify.models.complaint import Complaint
from fixify.routes.auth import login_required, role_required, request_data
from fixify.services import lifecycle, routing
from fixify.errors import PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)

complaints_bp = Blueprint('complaints', __name__)


def get_complaint_or_404(task_id):
    return Complaint.query.filter_by(task_id=task_id).first_or_404(
        description=f'Complaint {task_id} not found'
    )


def ensure_can_view(complaint):
    viewer = g.viewer
    if viewer.role == 'student' and complaint.user_id != viewer.id:
        raise PermissionDeniedError('You can only view your own complaints')


def ensure_can_act(complaint):
    """Staff act only on complaints routed to their assignment group (or handed to them)."""
    viewer = g.viewer
    if viewer.role == 'admin':
        return
    if complaint.assigned_to == viewer.id:
        return
    group_id = routing.resolve_group_id(viewer)
    if group_id is None or complaint.assignment_group_id != group_id:
        logger.warning(f"Staff {viewer.id} denied action on {complaint.task_id}")
        raise PermissionDeniedError('This complaint belongs to another assignment group')


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


@complaints_bp.route('/reference', methods=['GET'])
@login_required
def get_reference_data():
    return jsonify({
        'facility_types': [f.to_dict() for f in FacilityType.query.order_by(FacilityType.category_id, FacilityType.id).all()],
        'statuses': [s.to_dict() for s in Status.query.order_by(Status.id).all()],
        'assignment_groups': [a.to_dict() for a in AssignmentGroup.query.order_by(AssignmentGroup.name).all()]
    }), 200


@complaints_bp.route('/groups/<group_name>/staff', methods=['GET'])
@role_required('staff', 'admin')
def get_group_staff(group_name):
    return jsonify({'staff': routing.staff_in_group(group_name)}), 200


@complaints_bp.route('/', methods=['GET'])
@role_required('student')
def get_my_complaints():
    sort_by = request.args.get('sort')
    if sort_by and sort_by not in routing.STUDENT_SORTS:
        raise ValidationError(f'Unknown sort order: {sort_by}')

    complaints = routing.student_history(
        routing.complaints_for_student(g.viewer.id),
        search=request.args.get('search'),
        sort_by=sort_by
    )
    return jsonify({
        'complaints': [complaint.to_dict() for complaint in complaints],
        'total': len(complaints)
    }), 200


@complaints_bp.route('/', methods=['POST'])
@role_required('student')
def create_complaint():
    data = request_data()
    complaint = lifecycle.create_complaint(
        facility_type=data.get('facility_type'),
        description=data.get('description'),
        user=g.viewer,
        image=request.files.get('image')
    )
    return jsonify({
        'message': 'Complaint created successfully',
        'complaint': complaint.to_dict()
    }), 201


@complaints_bp.route('/summary', methods=['GET'])
@role_required('student')
def get_my_summary():
    return jsonify(routing.student_summary(routing.complaints_for_student(g.viewer.id))), 200


@complaints_bp.route('/<task_id>', methods=['GET'])
@login_required
def get_complaint(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_view(complaint)

    history = lifecycle.complaint_history(complaint)
    if g.viewer.role == 'student':
        # Internal notes and the audit trail stay with staff
        history = {'comments': history['comments']}

    return jsonify({
        'complaint': complaint.to_dict(),
        'feedback': complaint.feedback_entry.to_dict() if complaint.feedback_entry else None,
        'history': history
    }), 200


@complaints_bp.route('/<task_id>/status', methods=['POST'])
@role_required('staff', 'admin')
def change_status(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_act(complaint)
    data = request_data()

    complaint = lifecycle.transition_status(
        complaint,
        data.get('status'),
        actor=g.viewer,
        confirmed=parse_bool(data.get('confirm', False))
    )
    return jsonify({
        'message': f'Status changed to {complaint.status_name}',
        'complaint': complaint.to_dict()
    }), 200


@complaints_bp.route('/<task_id>/evidence', methods=['POST'])
@role_required('staff', 'admin')
def upload_evidence(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_act(complaint)

    evidence = lifecycle.attach_evidence(complaint, request.files.get('file'), actor=g.viewer)
    return jsonify({
        'message': 'Evidence uploaded successfully',
        'url': evidence.url,
        'complaint': complaint.to_dict()
    }), 201


@complaints_bp.route('/<task_id>/resolve', methods=['POST'])
@role_required('staff', 'admin')
def resolve_complaint(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_act(complaint)

    complaint = lifecycle.resolve(complaint, actor=g.viewer, files=request.files.getlist('files'))
    return jsonify({
        'message': 'Incident resolved successfully!',
        'complaint': complaint.to_dict()
    }), 200


@complaints_bp.route('/<task_id>/assignment', methods=['PUT'])
@role_required('staff', 'admin')
def update_assignment(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_act(complaint)
    data = request_data()

    complaint = lifecycle.assign(
        complaint,
        group=data.get('assignment_group'),
        staff_member=data.get('assigned_to') or None,
        actor=g.viewer
    )
    return jsonify({
        'message': 'Assignment updated successfully',
        'complaint': complaint.to_dict()
    }), 200


@complaints_bp.route('/<task_id>/comments', methods=['POST'])
@login_required
def add_comment(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_view(complaint)
    data = request_data()

    comment = lifecycle.add_comment(complaint, g.viewer, data.get('comment'))
    return jsonify({
        'message': 'Comment added',
        'comment': comment.to_dict()
    }), 201


@complaints_bp.route('/<task_id>/notes', methods=['POST'])
@role_required('staff', 'admin')
def add_work_note(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_act(complaint)
    data = request_data()

    note = lifecycle.add_work_note(complaint, g.viewer, data.get('note'))
    return jsonify({
        'message': 'Work note added',
        'note': note.to_dict()
    }), 201


@complaints_bp.route('/<task_id>/feedback', methods=['GET'])
@login_required
def get_feedback(task_id):
    complaint = get_complaint_or_404(task_id)
    ensure_can_view(complaint)
    entry = complaint.feedback_entry
    return jsonify({'feedback': entry.to_dict() if entry else None}), 200


@complaints_bp.route('/<task_id>/feedback', methods=['POST'])
@role_required('student')
def submit_feedback(task_id):
    complaint = get_complaint_or_404(task_id)
    if complaint.user_id != g.viewer.id:
        raise PermissionDeniedError('Only the student who filed the complaint can rate it')
    data = request_data()

    entry = lifecycle.submit_feedback(
        complaint,
        rating=data.get('rating'),
        comment=data.get('comments'),
        student=g.viewer
    )
    return jsonify({
        'message': 'Thank you for your feedback!',
        'feedback': entry.to_dict()
    }), 201
