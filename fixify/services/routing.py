"""
Role-scoped complaint views.

Staff see open complaints of their assignment group grouped as
Individual/Shared -> facility type -> task; students see their own
history. Fetching is kept apart from the pure reshaping functions so
the latter can run on any snapshot.
"""
import re
import logging
from datetime import datetime

from fixify.models.user import db, User, Staff
from fixify.models.reference import (
    Status, AssignmentGroup, SUBMITTED, PENDING, IN_PROGRESS, ON_HOLD,
)
from fixify.models.complaint import Complaint
from fixify.services.lifecycle import TERMINAL_STATES, RESOLVED_STATES

logger = logging.getLogger(__name__)

AGING_BUCKETS = ('<24h', '1-2 days', '2-5 days', '>5 days')

STUDENT_SORTS = ('date-asc', 'date-desc', 'category', 'status')

RECENT_LIMIT = 6


def slugify(name):
    """URL-safe facility id: 'Surau / Prayer Room' -> 'surau-prayer-room'."""
    return re.sub(r'[^a-z0-9]+', '-', (name or '').lower()).strip('-')


def format_opened_at(value):
    return value.strftime('%d/%m/%Y, %H:%M:%S') if value else ''


def resolve_group_id(viewer):
    """Assignment group id for a staff viewer, or None when they have no group."""
    if not viewer.assigned_group:
        return None
    group = AssignmentGroup.query.filter_by(name=viewer.assigned_group).first()
    return group.id if group else None


def open_tasks_for_viewer(viewer):
    group_id = resolve_group_id(viewer)
    if group_id is None:
        logger.info(f"Staff {viewer.id} has no resolvable assignment group")
        return []

    return Complaint.query.join(Complaint.status).filter(
        Complaint.assignment_group_id == group_id,
        Status.status_name.notin_(TERMINAL_STATES)
    ).order_by(Complaint.created_at.desc()).all()


def group_by_category(complaints):
    """
    Build the Individual/Shared accordion.

    Children are keyed by the facility display name (first-seen order), so
    two facility types sharing a name end up in the same bucket.
    """
    parents = {'Individual': {}, 'Shared': {}}

    for complaint in complaints:
        children = parents[complaint.category]
        title = complaint.facility_name or 'Unknown'
        if title not in children:
            children[title] = []
        children[title].append({
            'id': complaint.task_id,
            'desc': complaint.description,
            'openedAt': format_opened_at(complaint.created_at)
        })

    result = []
    for parent_title, children in parents.items():
        if not children:
            continue
        child_rows = [
            {
                'id': slugify(title),
                'title': title,
                'count': len(items),
                'items': items
            }
            for title, items in children.items()
        ]
        result.append({
            'id': parent_title.lower(),
            'title': parent_title,
            'count': sum(child['count'] for child in child_rows),
            'children': child_rows
        })
    return result


def tasks_for_facility(complaints, slug):
    """Rows for one facility page, matched on the slug of the facility name."""
    target = slugify(slug)
    rows = []
    for complaint in complaints:
        if slugify(complaint.facility_name) != target:
            continue
        rows.append({
            'id': complaint.id,
            'taskId': complaint.task_id,
            'desc': complaint.description,
            'facilityType': complaint.facility_name,
            'assignmentGroup': complaint.assignment_group.name if complaint.assignment_group else 'Unassigned',
            'assignmentGroupId': complaint.assignment_group_id,
            'assignedTo': complaint.assignee.full_name if complaint.assignee else 'Unassigned',
            'assignedToId': complaint.assigned_to,
            'openedAt': format_opened_at(complaint.created_at)
        })
    return rows


def aging_histogram(complaints, viewer_id, now=None):
    now = now or datetime.utcnow()
    buckets = dict.fromkeys(AGING_BUCKETS, 0)

    for complaint in complaints:
        if complaint.assigned_to != viewer_id or complaint.resolved_at is not None:
            continue
        hours = (now - complaint.created_at).total_seconds() / 3600
        if hours < 24:
            buckets['<24h'] += 1
        elif hours <= 48:
            buckets['1-2 days'] += 1
        elif hours <= 120:
            buckets['2-5 days'] += 1
        else:
            buckets['>5 days'] += 1

    return [{'bucket': name, 'count': count} for name, count in buckets.items()]


def assigned_to_viewer(viewer):
    return Complaint.query.filter(
        Complaint.assigned_to == viewer.id,
        Complaint.resolved_at.is_(None)
    ).order_by(Complaint.created_at.desc()).all()


def student_history(complaints, search=None, sort_by=None):
    result = list(complaints)

    if search:
        term = search.lower()

        def matches(c):
            student = c.submitter.student if c.submitter else None
            fields = [
                c.task_id,
                c.facility_name,
                student.hostel_block if student else None,
                student.room_no if student else None,
                c.status_name,
            ]
            return any(term in (f or '').lower() for f in fields)

        result = [c for c in result if matches(c)]

    if sort_by == 'date-asc':
        result.sort(key=lambda c: c.created_at)
    elif sort_by == 'date-desc':
        result.sort(key=lambda c: c.created_at, reverse=True)
    elif sort_by == 'category':
        result.sort(key=lambda c: (c.facility_name or '').lower())
    elif sort_by == 'status':
        result.sort(key=lambda c: (c.status_name or '').lower())

    return result


def student_summary(complaints):
    pending = in_progress = resolved = 0
    for complaint in complaints:
        status = complaint.status_name
        if status in (SUBMITTED, PENDING):
            pending += 1
        elif status in (IN_PROGRESS, ON_HOLD):
            in_progress += 1
        elif status in RESOLVED_STATES:
            resolved += 1

    recent = sorted(complaints, key=lambda c: c.created_at, reverse=True)[:RECENT_LIMIT]
    return {
        'pending': pending,
        'in_progress': in_progress,
        'resolved': resolved,
        'recent': [
            {
                'task_id': c.task_id,
                'facility_type': c.facility_name,
                'status': c.status_name,
                'created_at': c.created_at.isoformat() if c.created_at else None
            }
            for c in recent
        ]
    }


def complaints_for_student(user_id):
    return Complaint.query.filter_by(user_id=user_id).order_by(Complaint.created_at.desc()).all()


def staff_in_group(group_name):
    rows = db.session.query(User).join(Staff, Staff.id == User.id).filter(
        Staff.assigned_group == group_name,
        User.is_active.is_(True)
    ).order_by(User.full_name).all()
    return [{'id': u.id, 'full_name': u.full_name} for u in rows]
