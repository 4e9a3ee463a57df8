"""
Phone number login with one-time passwords.

Codes live in the default cache (Redis in production) under `otp:<phone>`
with a TTL, so any worker can verify a code another worker sent.
"""
import logging
import re
import secrets
import time

from django.core.cache import cache

from .exceptions import OTPVerificationFailed

logger = logging.getLogger('bin2win.core')

OTP_TTL_SECONDS = 300
OTP_MAX_ATTEMPTS = 3
OTP_LENGTH = 6

PHONE_RE = re.compile(r'^\+?[1-9]\d{1,14}$')
PHONE_SEPARATORS_RE = re.compile(r'[\s\-()]')


def normalize_phone(phone):
    """Strip spaces, dashes and brackets; None when the result is not an E.164-style number"""
    value = PHONE_SEPARATORS_RE.sub('', str(phone or ''))
    return value if PHONE_RE.match(value) else None


def otp_cache_key(phone):
    return f'otp:{phone}'


def generate_otp():
    return ''.join(secrets.choice('0123456789') for _ in range(OTP_LENGTH))


def deliver_otp(phone, code):
    # No SMS gateway is configured; the code only reaches the debug log
    logger.info(f"OTP issued for phone ending {phone[-4:]}")
    logger.debug(f"OTP for {phone}: {code}")


def send_otp(phone):
    """Issue a fresh code for `phone`, replacing any earlier one. Returns the TTL in seconds."""
    code = generate_otp()
    cache.set(otp_cache_key(phone), {
        'code': code,
        'expires_at': time.time() + OTP_TTL_SECONDS,
        'attempts': 0,
    }, OTP_TTL_SECONDS)
    deliver_otp(phone, code)
    return OTP_TTL_SECONDS


def verify_otp(phone, code):
    """
    Check `code` against the stored OTP and consume it on success.

    A wrong code counts an attempt; once OTP_MAX_ATTEMPTS have been used the
    stored code is dropped and a new one must be requested.

    Raises:
        OTPVerificationFailed: no code, expired, too many attempts or mismatch
    """
    key = otp_cache_key(phone)
    stored = cache.get(key)
    if stored is None:
        raise OTPVerificationFailed('OTP not found. Please request a new OTP.')

    remaining_ttl = stored['expires_at'] - time.time()
    if remaining_ttl <= 0:
        cache.delete(key)
        raise OTPVerificationFailed('OTP has expired. Please request a new OTP.')

    if stored['attempts'] >= OTP_MAX_ATTEMPTS:
        cache.delete(key)
        raise OTPVerificationFailed('Maximum OTP attempts exceeded. Please request a new OTP.')

    if not secrets.compare_digest(str(code or '').strip(), stored['code']):
        stored['attempts'] += 1
        cache.set(key, stored, max(1, int(remaining_ttl)))
        remaining = OTP_MAX_ATTEMPTS - stored['attempts']
        logger.warning(f"Wrong OTP for phone ending {phone[-4:]}, {remaining} attempts remaining")
        raise OTPVerificationFailed(f'Invalid OTP. {remaining} attempts remaining.')

    cache.delete(key)
