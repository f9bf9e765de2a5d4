from flask import Blueprint, request, jsonify, g, current_app
from datetime import datetime

from fixify.models.user import User
from fixify.models.complaint import Complaint, Feedback
from fixify.routes.auth import admin_required, role_required
from fixify.services import reporting

reports_bp = Blueprint('reports', __name__)


@reports_bp.route('/dashboard', methods=['GET'])
@admin_required
def get_dashboard_data():
    now = datetime.utcnow()

    # One snapshot per view load; every reducer works on the same rows
    complaints = Complaint.query.order_by(Complaint.created_at.desc()).all()
    feedback = Feedback.query.all()
    staff_members = User.query.filter_by(role='staff', is_active=True).order_by(User.full_name).all()

    return jsonify({
        'cards': reporting.dashboard_cards(complaints, now=now, overdue_days=current_app.config['OVERDUE_DAYS']),
        'facilityData': reporting.facility_data(complaints),
        'trendChartData': reporting.trend_chart_data(
            complaints, feedback, now=now, months=current_app.config['TREND_MONTHS']
        ),
        'staffChartData': reporting.staff_chart_data(complaints, now=now),
        'staffPerformanceList': reporting.staff_performance_list(complaints, staff_members),
        'total': len(complaints)
    }), 200


@reports_bp.route('/records', methods=['GET'])
@admin_required
def get_complaint_records():
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)

    complaints = Complaint.query.order_by(Complaint.created_at.desc()).all()
    rows = reporting.filter_records(
        complaints,
        search=request.args.get('search'),
        facility=request.args.get('facility'),
        staff=request.args.get('staff')
    )

    page = max(page, 1)
    per_page = max(per_page, 1)
    start = (page - 1) * per_page

    return jsonify({
        'records': rows[start:start + per_page],
        'total': len(rows),
        'pages': (len(rows) + per_page - 1) // per_page,
        'current_page': page,
        'per_page': per_page,
        'facilities': sorted({c.facility_name for c in complaints if c.facility_name}),
        'staff': sorted({c.assignee.full_name for c in complaints if c.assignee})
    }), 200


@reports_bp.route('/performance', methods=['GET'])
@role_required('staff')
def get_performance_insights():
    months = request.args.get('months', 6, type=int)
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 10, type=int)

    complaints = Complaint.query.filter_by(
        assigned_to=g.viewer.id
    ).order_by(Complaint.created_at.desc()).all()

    return jsonify(reporting.staff_insights(
        complaints,
        months=months,
        page=page,
        per_page=max(per_page, 1)
    )), 200
