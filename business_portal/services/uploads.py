import io
import logging
import os
import re
import uuid

from PIL import Image
from flask import current_app
from werkzeug.utils import secure_filename

from business_portal.errors import ValidationFailed

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = '/api/uploads/'
MAX_IMAGE_SIDE = 1200
MAX_IMAGE_BYTES = 700 * 1024
MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024
ATTACHMENT_TYPES = {
    'image/jpeg': ('.jpg', '.jpeg'),
    'image/png': ('.png',),
    'image/webp': ('.webp',),
    'application/pdf': ('.pdf',),
}


def resolve_upload_dir():
    configured = current_app.config.get('UPLOAD_DIR')
    if configured:
        return configured
    base = current_app.config.get('BASE_DIR') or os.getcwd()
    if current_app.config.get('ENV_NAME') == 'production':
        return os.path.join(base, 'uploads')
    return os.path.join(base, 'public', 'uploads')


def _clean_name(filename):
    name = re.sub(r'\s+', '-', os.path.basename(filename or 'file'))
    return secure_filename(name) or 'file'


def _target(subdir, filename):
    root = resolve_upload_dir()
    folder = os.path.join(root, subdir) if subdir else root
    os.makedirs(folder, exist_ok=True)
    stored = f'{uuid.uuid4()}-{filename}'
    public = PUBLIC_PREFIX + (f'{subdir}/{stored}' if subdir else stored)
    return os.path.join(folder, stored), public


def save_upload(file, subdir=None):
    """Store an uploaded file as-is and return its public path."""
    path, public = _target(subdir, _clean_name(file.filename))
    file.stream.seek(0)
    with open(path, 'wb') as fh:
        fh.write(file.stream.read())
    return public


def compress_image(data):
    """Shrink to MAX_IMAGE_SIDE and re-encode as JPEG under MAX_IMAGE_BYTES when possible."""
    image = Image.open(io.BytesIO(data))
    if image.mode not in ('RGB', 'L'):
        image = image.convert('RGB')
    image.thumbnail((MAX_IMAGE_SIDE, MAX_IMAGE_SIDE))

    quality = 80
    while True:
        output = io.BytesIO()
        image.save(output, format='JPEG', quality=quality)
        if output.tell() <= MAX_IMAGE_BYTES or quality <= 10:
            return output.getvalue()
        quality -= 10


def save_image(file, subdir=None):
    file.stream.seek(0)
    try:
        data = compress_image(file.stream.read())
    except (OSError, ValueError):
        logger.exception('Could not process image %s', file.filename)
        raise ValidationFailed('Invalid image file')

    stem = os.path.splitext(_clean_name(file.filename))[0]
    path, public = _target(subdir, f'{stem}.jpg')
    with open(path, 'wb') as fh:
        fh.write(data)
    return public


def local_path(public_path):
    """Filesystem path for a public upload path, None when it points outside the upload dir."""
    if not public_path:
        return None
    for prefix in (PUBLIC_PREFIX, '/uploads/'):
        if public_path.startswith(prefix):
            relative = public_path[len(prefix):]
            break
    else:
        return None

    root = os.path.abspath(resolve_upload_dir())
    path = os.path.abspath(os.path.join(root, relative))
    if os.path.commonpath([root, path]) != root or path == root:
        return None
    return path


def delete_upload(public_path):
    path = local_path(public_path)
    if not path:
        return False
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError:
        logger.exception('Failed to delete upload %s', public_path)
        return False


def file_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_attachment(file):
    if file_size(file) > MAX_ATTACHMENT_BYTES:
        raise ValidationFailed('File too large (max 5MB)')
    extension = os.path.splitext(file.filename or '')[1].lower()
    mimetype = (file.mimetype or '').lower()
    if mimetype in ATTACHMENT_TYPES:
        if extension in ATTACHMENT_TYPES[mimetype]:
            return True
    raise ValidationFailed('Only JPEG, PNG, WEBP and PDF files are allowed')
