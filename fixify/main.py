import os
import logging
import click
from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from fixify.config import Config, BASE_DIR
from fixify.errors import FixifyError
from fixify.models.user import db, User, Staff
from fixify.models.reference import AssignmentGroup, seed_reference_data
from fixify.routes.auth import auth_bp
from fixify.routes.complaints import complaints_bp
from fixify.routes.tasks import tasks_bp
from fixify.routes.reports import reports_bp

logger = logging.getLogger(__name__)


def configure_logging(level):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def register_error_handlers(app):
    @app.errorhandler(FixifyError)
    def handle_fixify_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        logger.error(f"Database error: {error}", exc_info=True)
        return jsonify({'error': 'The database is unavailable, please try again'}), 502

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'error': error.description}), error.code


def register_commands(app):
    @app.cli.command('create-user')
    @click.option('--email', prompt=True)
    @click.option('--name', 'full_name', prompt=True)
    @click.option('--role', type=click.Choice(['staff', 'admin']), default='staff', show_default=True)
    @click.option('--group', 'assigned_group', default=None, help='Assignment group for staff')
    @click.password_option()
    def create_user(email, full_name, role, assigned_group, password):
        """Provision a staff or admin account."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f'{email} already exists')
        if assigned_group and not AssignmentGroup.query.filter_by(name=assigned_group).first():
            raise click.ClickException(f'Unknown assignment group: {assigned_group}')

        user = User(email=email, full_name=full_name, role=role)
        user.set_password(password)
        if role == 'staff':
            user.staff = Staff(assigned_group=assigned_group)
        db.session.add(user)
        db.session.commit()
        click.echo(f'Created {role} {email} (id {user.id})')


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config['LOG_LEVEL'])

    # Enable CORS for all routes with credentials support
    CORS(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(complaints_bp, url_prefix='/api/complaints')
    app.register_blueprint(tasks_bp, url_prefix='/api/tasks')
    app.register_blueprint(reports_bp, url_prefix='/api/reports')

    register_error_handlers(app)
    register_commands(app)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///') and ':memory:' not in app.config['SQLALCHEMY_DATABASE_URI']:
        os.makedirs(os.path.join(BASE_DIR, 'database'), exist_ok=True)
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    db.init_app(app)

    with app.app_context():
        db.create_all()
        if app.config['SEED_REFERENCE_DATA']:
            seed_reference_data()

    @app.route('/uploads/<path:filename>')
    def uploaded_file(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    @app.route('/api/health')
    def health_check():
        return {'status': 'healthy', 'message': 'Fixify Hostel Complaint Tracking API'}

    logger.info(f"Fixify API ready, database: {app.config['SQLALCHEMY_DATABASE_URI'].split(':')[0]}")
    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=5000, debug=True)
