import re
import logging
from collections import namedtuple
from functools import wraps
from flask import Blueprint, request, jsonify, session, g

from fixify.models.user import User, Student, Staff, db, ROLES
from fixify.models.reference import AssignmentGroup
from fixify.errors import ValidationError
from fixify import storage

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_RE = re.compile(r'^[+()0-9\-\s]{6,}$')
MIN_PASSWORD_LENGTH = 6

# Resolved once per request from the session; never mutated afterwards
Viewer = namedtuple('Viewer', ['id', 'role', 'full_name', 'assigned_group', 'room_no', 'hostel_block'])


def build_viewer(user):
    return Viewer(
        id=user.id,
        role=user.role,
        full_name=user.full_name,
        assigned_group=user.staff.assigned_group if user.staff else None,
        room_no=user.student.room_no if user.student else None,
        hostel_block=user.student.hostel_block if user.student else None
    )


@auth_bp.before_app_request
def load_viewer():
    g.viewer = None
    user_id = session.get('user_id')
    if user_id is None:
        return

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        session.clear()
        return
    g.viewer = build_viewer(user)


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('viewer') is None:
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('viewer') is None:
                return jsonify({'error': 'Authentication required'}), 401
            if g.viewer.role not in roles:
                return jsonify({'error': f"{' or '.join(r.capitalize() for r in roles)} access required"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = role_required('admin')


def request_data():
    """JSON body, or form fields for multipart requests."""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError('Request body must be an object')
    return data


def validate_phone(phone):
    if phone and not PHONE_RE.match(phone):
        raise ValidationError('Invalid phone number format.')


def validate_registration(data):
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email:
        raise ValidationError('Email is required.')
    if not EMAIL_RE.match(email):
        raise ValidationError('Invalid email format.')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
    if not (data.get('full_name') or '').strip():
        raise ValidationError('Name is required.')
    validate_phone((data.get('phone') or '').strip())
    for field in ('room_no', 'hostel_block'):
        if not (data.get(field) or '').strip():
            raise ValidationError(f'{field} is required')
    return email


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request_data()
    email = validate_registration(data)

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered'}), 400

    user = User(
        email=email,
        full_name=data['full_name'].strip(),
        phone=(data.get('phone') or '').strip() or None,
        role='student'
    )
    user.set_password(data['password'])
    user.student = Student(
        room_no=data['room_no'].strip(),
        hostel_block=data['hostel_block'].strip()
    )
    db.session.add(user)
    db.session.commit()

    session['user_id'] = user.id
    session['user_role'] = user.role
    logger.info(f"Student {user.id} registered")

    return jsonify({
        'message': 'Registration successful',
        'user': user.to_dict()
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request_data()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')

    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400

    user = User.query.filter_by(email=email).first()

    if user and user.check_password(password) and user.is_active:
        session['user_id'] = user.id
        session['user_role'] = user.role

        return jsonify({
            'message': 'Login successful',
            'user': user.to_dict()
        }), 200
    else:
        logger.warning(f"Failed login attempt for {email}")
        return jsonify({'error': 'Invalid email or password'}), 401


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    session.clear()
    return jsonify({'message': 'Logout successful'}), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def get_current_user():
    user = db.session.get(User, g.viewer.id)
    return jsonify({'user': user.to_dict()}), 200


@auth_bp.route('/me', methods=['PUT'])
@login_required
def update_current_user():
    user = db.session.get(User, g.viewer.id)
    data = request_data()

    if 'full_name' in data:
        if not (data['full_name'] or '').strip():
            raise ValidationError('Name is required.')
        user.full_name = data['full_name'].strip()
    if 'phone' in data:
        phone = (data['phone'] or '').strip()
        validate_phone(phone)
        user.phone = phone or None
    if user.student:
        if 'room_no' in data:
            user.student.room_no = data['room_no']
        if 'hostel_block' in data:
            user.student.hostel_block = data['hostel_block']

    picture = request.files.get('profile_pic')
    if picture is not None and picture.filename:
        path = storage.upload(picture, 'avatars', f'user{user.id}')
        user.profile_pic_url = storage.get_public_url(path)

    db.session.commit()

    return jsonify({
        'message': 'Profile updated successfully',
        'user': user.to_dict()
    }), 200


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    data = request_data()
    current_password = data.get('current_password')
    new_password = data.get('new_password')

    if not current_password or not new_password:
        return jsonify({'error': 'Current password and new password are required'}), 400
    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({'error': f'Password must be at least {MIN_PASSWORD_LENGTH} characters.'}), 400

    user = db.session.get(User, g.viewer.id)

    if not user.check_password(current_password):
        return jsonify({'error': 'Current password is incorrect'}), 400

    user.set_password(new_password)
    db.session.commit()

    return jsonify({'message': 'Password changed successfully'}), 200


@auth_bp.route('/users', methods=['GET'])
@admin_required
def get_users():
    role = request.args.get('role')
    query = User.query.filter_by(is_active=True)
    if role and role != 'All':
        if role not in ROLES:
            raise ValidationError(f'Unknown role: {role}')
        query = query.filter_by(role=role)

    users = query.order_by(User.full_name).all()
    return jsonify({
        'users': [user.to_dict() for user in users]
    }), 200


@auth_bp.route('/users/<int:user_id>/group', methods=['PUT'])
@admin_required
def update_staff_group(user_id):
    user = db.get_or_404(User, user_id)
    data = request_data()

    if user.role != 'staff':
        return jsonify({'error': 'Only staff members belong to assignment groups'}), 400

    group_name = data.get('assigned_group')
    if group_name and not AssignmentGroup.query.filter_by(name=group_name).first():
        raise ValidationError(f'Unknown assignment group: {group_name}')

    if user.staff is None:
        user.staff = Staff()
    user.staff.assigned_group = group_name or None
    db.session.commit()

    logger.info(f"Staff {user.id} moved to group {group_name or 'none'}")
    return jsonify({
        'message': 'Staff group updated successfully',
        'user': user.to_dict()
    }), 200
