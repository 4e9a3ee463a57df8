"""
QR code values printed on user cards and booth posters.

A QR value is a fixed prefix followed by 16 upper-case hex characters taken
from a SHA-256 digest, e.g. ``SIMHASTHA_USER_3F9A0C1B2D4E5F60``. Each user and
booth also gets an 8-character backup code for manual entry when a camera
is not available.
"""
import hashlib
import re
import secrets
import string
import time

from django.conf import settings

USER_QR_PREFIX = 'SIMHASTHA_USER_'
BOOTH_QR_PREFIX = 'SIMHASTHA_BOOTH_'
QR_HASH_LENGTH = 16
BACKUP_CODE_LENGTH = 8
BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits

QR_PREFIXES = {
    'user': USER_QR_PREFIX,
    'booth': BOOTH_QR_PREFIX,
}

_HASH_RE = re.compile(r'^[0-9A-F]{%d}$' % QR_HASH_LENGTH)
_BACKUP_RE = re.compile(r'^[A-Z0-9]{%d}$' % BACKUP_CODE_LENGTH)


def _digest(*parts) -> str:
    secret = getattr(settings, 'QR_CODE_SECRET', '') or settings.SECRET_KEY
    payload = '_'.join(str(part) for part in parts + (time.time_ns(), secret, secrets.token_hex(8)))
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()[:QR_HASH_LENGTH].upper()


def generate_user_qr_code(user_id, username) -> str:
    return f'{USER_QR_PREFIX}{_digest(user_id, username)}'


def generate_booth_qr_code(booth_code, booth_name) -> str:
    return f'{BOOTH_QR_PREFIX}{_digest(booth_code, booth_name)}'


def validate_qr_code_format(qr_code, kind='user') -> bool:
    prefix = QR_PREFIXES.get(kind)
    if prefix is None or not isinstance(qr_code, str):
        return False
    if not qr_code.startswith(prefix):
        return False
    return bool(_HASH_RE.match(qr_code[len(prefix):]))


def parse_qr_code(qr_code) -> dict:
    """Split a scanned value into its kind and hash part."""
    value = (qr_code or '').strip() if isinstance(qr_code, str) else ''
    for kind, prefix in QR_PREFIXES.items():
        if value.startswith(prefix):
            return {
                'type': kind,
                'code': value[len(prefix):],
                'is_valid': validate_qr_code_format(value, kind),
            }
    return {'type': 'unknown', 'code': value, 'is_valid': False}


def generate_backup_code(length=BACKUP_CODE_LENGTH) -> str:
    return ''.join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))


def validate_backup_code(code) -> bool:
    return isinstance(code, str) and bool(_BACKUP_RE.match(code.strip().upper()))


def unique_code(model, field, generator, *args):
    """Generate a value with `generator` until it is unused in `model.field`."""
    value = generator(*args)
    while model._default_manager.filter(**{field: value}).exists():
        value = generator(*args)
    return value
