"""Object storage for complaint images and resolution evidence.

Files are written under ``UPLOAD_FOLDER`` and exposed by the app at
``/uploads/<path>``.
"""
import os
import logging
from datetime import datetime
from flask import current_app
from werkzeug.utils import secure_filename

from fixify.errors import ValidationError, RemoteOperationError

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = '/uploads'


def allowed_file(filename):
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_IMAGE_EXTENSIONS']


def upload(file, folder, name_prefix):
    """Store an uploaded file as ``<folder>/<prefix>_<timestamp>_<name>`` and return its path."""
    if file is None or not file.filename:
        raise ValidationError('No file selected')
    if not allowed_file(file.filename):
        raise ValidationError('Only image uploads are accepted')

    filename = secure_filename(file.filename)
    stamp = datetime.utcnow().strftime('%Y%m%d%H%M%S%f')
    relative_path = f'{folder}/{name_prefix}_{stamp}_{filename}'
    target = os.path.join(current_app.config['UPLOAD_FOLDER'], folder)

    try:
        os.makedirs(target, exist_ok=True)
        file.save(os.path.join(current_app.config['UPLOAD_FOLDER'], relative_path))
    except OSError as e:
        logger.error(f"Failed to store upload {relative_path}: {e}", exc_info=True)
        raise RemoteOperationError('Error uploading file') from e

    return relative_path


def get_public_url(relative_path):
    return f'{PUBLIC_PREFIX}/{relative_path}'


def remove(relative_path):
    """Delete a stored file; used to undo uploads whose database write failed."""
    try:
        os.remove(os.path.join(current_app.config['UPLOAD_FOLDER'], relative_path))
    except OSError as e:
        logger.warning(f"Could not remove upload {relative_path}: {e}")
