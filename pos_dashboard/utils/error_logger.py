"""
Error Logger Utility
Captures application errors to the database with request context.
"""

import traceback
import json
import logging
from datetime import datetime
from flask import request, has_request_context
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

# Keys to redact from request data
SENSITIVE_KEYS = {
    'password', 'password_hash', 'token', 'csrf_token', 'secret',
    'api_key', 'authorization', 'cookie', 'session', 'card_number',
    'cvv', 'pin', 'otp'
}


def _sanitize_data(data):
    """Redact sensitive keys from a dict."""
    if not isinstance(data, dict):
        return data
    sanitized = {}
    for key, value in data.items():
        if any(s in key.lower() for s in SENSITIVE_KEYS):
            sanitized[key] = '[REDACTED]'
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_data(value)
        else:
            sanitized[key] = str(value)[:500]  # Truncate long values
    return sanitized


def _request_payload():
    raw_data = {}
    if request.form:
        raw_data['form'] = request.form.to_dict()
    if request.args:
        raw_data['args'] = request.args.to_dict()
    body = request.get_json(silent=True) if request.is_json else None
    if isinstance(body, dict):
        raw_data['json'] = body
    if not raw_data:
        return None
    return json.dumps(_sanitize_data(raw_data))[:4000]


def log_error(error, status_code=500):
    """
    Log an error to the database.

    Safe to call from error handlers: a failure to write the log row is
    reported through the standard logger and never re-raised.

    Args:
        error: The exception or error object
        status_code: HTTP status code (default 500)

    Returns:
        ErrorLog or None
    """
    from pos_dashboard.models import db, ErrorLog

    tb = traceback.format_exc()
    error_log = ErrorLog(
        timestamp=datetime.utcnow(),
        error_type=type(error).__name__,
        error_message=str(error)[:2000],
        traceback=None if tb == 'NoneType: None\n' else tb,
        status_code=status_code,
        is_resolved=False
    )

    if has_request_context():
        error_log.request_url = request.url[:512] if request.url else None
        error_log.request_method = request.method
        error_log.ip_address = request.remote_addr
        error_log.endpoint = request.endpoint
        error_log.request_data = _request_payload()
        if current_user and current_user.is_authenticated:
            error_log.user_id = current_user.id

    try:
        db.session.add(error_log)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Could not store error log: {e}")
        return None
    return error_log
