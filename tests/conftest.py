"""
Fixify - Test Configuration and Fixtures
"""
import io
import shutil
import pytest
from werkzeug.datastructures import FileStorage

from fixify.main import create_app
from fixify.config import TestConfig
from fixify.models.user import db, User, Student, Staff
from fixify.routes.auth import build_viewer

PASSWORD = 'testpassword123'


@pytest.fixture
def app():
    """Fresh app on an in-memory database for each test"""
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
    shutil.rmtree(TestConfig.UPLOAD_FOLDER, ignore_errors=True)


@pytest.fixture
def ctx(app):
    """Push an application context for service-level tests"""
    with app.app_context():
        yield


def _make_user(email, full_name, role, group=None):
    user = User(email=email, full_name=full_name, role=role, phone='+60 12-345 6789')
    user.set_password(PASSWORD)
    if role == 'student':
        user.student = Student(room_no='A-101', hostel_block='Block A')
    elif role == 'staff':
        user.staff = Staff(assigned_group=group)
    db.session.add(user)
    db.session.commit()
    return user.id


@pytest.fixture
def user_ids(app):
    """Ids of one user per role plus staff in other groups"""
    with app.app_context():
        return {
            'student': _make_user('student@fixify.test', 'Siti Student', 'student'),
            'other_student': _make_user('other@fixify.test', 'Omar Student', 'student'),
            'staff': _make_user('staff@fixify.test', 'Ethan Electric', 'staff', 'Electrical'),
            'colleague': _make_user('colleague@fixify.test', 'Eva Electric', 'staff', 'Electrical'),
            'plumber': _make_user('plumber@fixify.test', 'Paul Plumber', 'staff', 'Plumbing'),
            'no_group': _make_user('nogroup@fixify.test', 'Nadia Nogroup', 'staff'),
            'admin': _make_user('admin@fixify.test', 'Ada Admin', 'admin'),
        }


@pytest.fixture
def users(ctx, user_ids):
    """User rows loaded inside the pushed app context"""
    return {key: db.session.get(User, user_id) for key, user_id in user_ids.items()}


@pytest.fixture
def viewer(users):
    """Build the request viewer for a user role"""
    def _viewer(key):
        return build_viewer(users[key])
    return _viewer


@pytest.fixture
def login(app, user_ids):
    """Return a test client logged in as the given role"""
    emails = {
        'student': 'student@fixify.test',
        'other_student': 'other@fixify.test',
        'staff': 'staff@fixify.test',
        'colleague': 'colleague@fixify.test',
        'plumber': 'plumber@fixify.test',
        'no_group': 'nogroup@fixify.test',
        'admin': 'admin@fixify.test',
    }

    def _login(key):
        client = app.test_client()
        response = client.post('/api/auth/login', json={'email': emails[key], 'password': PASSWORD})
        assert response.status_code == 200
        return client
    return _login


@pytest.fixture
def image():
    """Factory for in-memory image uploads"""
    def _image(name='evidence.jpg'):
        return FileStorage(stream=io.BytesIO(b'\x89PNG fake image bytes'), filename=name, content_type='image/jpeg')
    return _image
