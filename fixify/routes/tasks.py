from flask import Blueprint, jsonify, g

from fixify.models.reference import AssignmentGroup
from fixify.routes.auth import role_required
from fixify.services import routing

tasks_bp = Blueprint('tasks', __name__)


@tasks_bp.route('/', methods=['GET'])
@role_required('staff')
def get_grouped_tasks():
    """Open tasks of the viewer's assignment group as Individual/Shared -> facility -> task."""
    complaints = routing.open_tasks_for_viewer(g.viewer)
    return jsonify({
        'assignment_group': g.viewer.assigned_group,
        'categories': routing.group_by_category(complaints),
        'total': len(complaints)
    }), 200


@tasks_bp.route('/facility/<slug>', methods=['GET'])
@role_required('staff')
def get_facility_tasks(slug):
    complaints = routing.open_tasks_for_viewer(g.viewer)
    tasks = routing.tasks_for_facility(complaints, slug)

    # Dropdown options: every group, and staff of the viewer's own group
    groups = AssignmentGroup.query.order_by(AssignmentGroup.name).all()
    staff = routing.staff_in_group(g.viewer.assigned_group) if g.viewer.assigned_group else []

    return jsonify({
        'facility': tasks[0]['facilityType'] if tasks else slug.replace('-', ' '),
        'tasks': tasks,
        'group_options': [group.to_dict() for group in groups],
        'staff_options': staff
    }), 200


@tasks_bp.route('/aging', methods=['GET'])
@role_required('staff')
def get_aging():
    complaints = routing.assigned_to_viewer(g.viewer)
    return jsonify({
        'buckets': routing.aging_histogram(complaints, g.viewer.id),
        'total': len(complaints)
    }), 200
