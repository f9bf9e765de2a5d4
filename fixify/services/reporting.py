"""
Dashboard reducers.

Pure functions over a snapshot of complaints loaded once per request. None
of them touch the database; ``now`` is injectable for deterministic output.
"""
import math
import calendar
from datetime import datetime, timedelta

from fixify.services.lifecycle import TERMINAL_STATES, RESOLVED_STATES

TOP_FACILITIES = 5
NO_FEEDBACK_COMMENT = "Student hasn't submitted feedback"


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _shift_months(moment, months):
    """Move a datetime back or forward by whole calendar months, clamping the day."""
    total = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(total, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def is_open(complaint):
    return complaint.status_name not in TERMINAL_STATES


def facility_counts(complaints):
    counts = {}
    for complaint in complaints:
        name = complaint.facility_name or 'Unknown'
        counts[name] = counts.get(name, 0) + 1
    return counts


def _ranked(counts):
    # Highest count first, ties broken alphabetically by facility name
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def most_reported_facility(complaints):
    counts = facility_counts(complaints)
    total = sum(counts.values())
    if not total:
        return {'category': None, 'count': 0, 'percentage': 0}

    name, count = _ranked(counts)[0]
    return {
        'category': name,
        'count': count,
        'percentage': _round_half_up(100 * count / total)
    }


def dashboard_cards(complaints, now=None, overdue_days=3):
    # Open means not in any terminal state, so Closed Incomplete is not counted as opened
    now = now or datetime.utcnow()
    overdue_after = timedelta(days=overdue_days)

    opened = overdue = resolved_this_month = 0
    for complaint in complaints:
        if is_open(complaint):
            opened += 1
            if complaint.created_at and now - complaint.created_at > overdue_after:
                overdue += 1
        resolved_at = complaint.resolved_at
        if resolved_at and resolved_at.year == now.year and resolved_at.month == now.month:
            resolved_this_month += 1

    return {
        'openedTickets': opened,
        'overdueTickets': overdue,
        'resolvedThisMonth': resolved_this_month,
        'mostReportedFacility': most_reported_facility(complaints)
    }


def facility_data(complaints, limit=TOP_FACILITIES):
    return [
        {'category': name, 'count': count}
        for name, count in _ranked(facility_counts(complaints))[:limit]
    ]


def trend_chart_data(complaints, feedback, now=None, months=6):
    """Complaint count and mean feedback rating for the current month and the ones before it."""
    now = now or datetime.utcnow()
    buckets = {}
    for offset in range(months - 1, -1, -1):
        moment = _shift_months(now.replace(day=1), -offset)
        buckets[(moment.year, moment.month)] = {
            'month': moment.strftime('%b'),
            'year': moment.year,
            'complaints': 0,
            'ratings': []
        }

    for complaint in complaints:
        if complaint.created_at is None:
            continue
        key = (complaint.created_at.year, complaint.created_at.month)
        if key in buckets:
            buckets[key]['complaints'] += 1

    for entry in feedback:
        if entry.created_at is None or entry.rating is None:
            continue
        key = (entry.created_at.year, entry.created_at.month)
        if key in buckets:
            buckets[key]['ratings'].append(entry.rating)

    rows = []
    for bucket in buckets.values():
        ratings = bucket.pop('ratings')
        bucket['satisfaction'] = round(sum(ratings) / len(ratings), 2) if ratings else None
        rows.append(bucket)
    return rows


def staff_chart_data(complaints, now=None):
    """Open complaints in hand per staff member and the age of the oldest one."""
    now = now or datetime.utcnow()
    tally = {}

    for complaint in complaints:
        if complaint.assigned_to is None or not is_open(complaint):
            continue
        entry = tally.get(complaint.assigned_to)
        if entry is None:
            entry = tally[complaint.assigned_to] = {
                'staffName': complaint.assignee.full_name if complaint.assignee else 'Unknown',
                'tasksInHand': 0,
                'oldest': complaint.created_at
            }
        entry['tasksInHand'] += 1
        if complaint.created_at < entry['oldest']:
            entry['oldest'] = complaint.created_at

    return [
        {
            'staffName': entry['staffName'],
            'tasksInHand': entry['tasksInHand'],
            'oldestTicketDays': (now - entry['oldest']).days
        }
        for entry in tally.values()
    ]


def rating_remark(average):
    if average >= 4.5:
        return 'Excellent'
    elif average >= 3.5:
        return 'Satisfactory'
    elif average > 0:
        return 'Needs Improvement'
    return 'No Ratings'


def staff_performance_list(complaints, staff_members):
    resolved_by_staff = {}
    for complaint in complaints:
        if complaint.assigned_to is None or complaint.status_name not in RESOLVED_STATES:
            continue
        resolved_by_staff.setdefault(complaint.assigned_to, []).append(complaint)

    rows = []
    for member in staff_members:
        resolved = resolved_by_staff.get(member.id, [])
        ratings = [
            c.feedback_entry.rating
            for c in resolved
            if c.feedback and c.feedback_entry is not None and c.feedback_entry.rating is not None
        ]
        average = sum(ratings) / len(ratings) if ratings else 0
        rows.append({
            'staffId': member.id,
            'staffName': member.full_name,
            'complaintsResolved': len(resolved),
            'averageRating': round(average, 2),
            'remarks': rating_remark(average)
        })
    return rows


def _record_row(complaint):
    entry = complaint.feedback_entry
    return {
        'complaintId': complaint.task_id,
        'description': complaint.description,
        'comment': entry.comments if entry and entry.comments else '',
        'rating': entry.rating if entry else None,
        'facility': complaint.facility_name,
        'status': complaint.status_name,
        'assignedTo': complaint.assignee.full_name if complaint.assignee else 'Unassigned',
        'openedAt': complaint.created_at.strftime('%Y-%m-%d') if complaint.created_at else '',
        'closedAt': complaint.resolved_at.strftime('%Y-%m-%d') if complaint.resolved_at else None
    }


def filter_records(complaints, search=None, facility=None, staff=None):
    """Admin complaint records table with free-text search and exact facility/staff filters."""
    term = (search or '').lower()
    rows = []
    for complaint in complaints:
        row = _record_row(complaint)
        if term:
            haystack = [
                row['complaintId'], row['description'], row['comment'],
                row['facility'], row['assignedTo'], row['openedAt'], row['closedAt'],
            ]
            if not any(term in (value or '').lower() for value in haystack):
                continue
        if facility and row['facility'] != facility:
            continue
        if staff and row['assignedTo'] != staff:
            continue
        rows.append(row)
    return rows


def staff_insights(complaints, months=6, page=1, per_page=10, now=None):
    """Performance view for one staff member over the complaints assigned to them."""
    now = now or datetime.utcnow()
    rated = [c for c in complaints if c.feedback_entry is not None]
    ratings = [c.feedback_entry.rating for c in rated if c.feedback_entry.rating is not None]
    average = sum(ratings) / len(ratings) if ratings else 0

    recent = sorted(
        (
            {
                'complaintId': c.task_id,
                'student': c.submitter.full_name if c.submitter else 'Student',
                'rating': c.feedback_entry.rating,
                'comments': c.feedback_entry.comments or NO_FEEDBACK_COMMENT,
                'feedbackCreatedAt': c.feedback_entry.created_at
            }
            for c in rated
        ),
        key=lambda row: row['feedbackCreatedAt'] or datetime.min,
        reverse=True
    )

    page = max(page, 1)
    total_pages = math.ceil(len(recent) / per_page) if per_page > 0 else 0
    start = (page - 1) * per_page
    page_rows = recent[start:start + per_page]

    trend_start = _shift_months(now, -months)
    trend = sorted(
        (
            {'date': c.feedback_entry.created_at, 'rating': c.feedback_entry.rating}
            for c in rated
            if c.feedback_entry.rating is not None
            and c.feedback_entry.created_at is not None
            and c.feedback_entry.created_at >= trend_start
        ),
        key=lambda row: row['date']
    )

    change = 0
    if len(trend) >= 2:
        first, last = trend[0]['rating'], trend[-1]['rating']
        change = (last - first) / (first or 1) * 100

    for row in page_rows:
        created = row['feedbackCreatedAt']
        row['feedbackCreatedAt'] = created.isoformat() if created else None

    return {
        'averageRating': round(average, 1),
        'totalTasks': len(complaints),
        'recentFeedback': page_rows,
        'page': page,
        'perPage': per_page,
        'totalPages': total_pages,
        'ratingTrend': [
            {'timestamp': row['date'].strftime('%d %b %Y, %H:%M'), 'rating': row['rating']}
            for row in trend
        ],
        'trendChange': round(change, 1)
    }
