"""
Error Logger Utility
Captures unhandled application errors to the database with request context.
"""

import json
import logging
import traceback
from datetime import datetime
from flask import request, has_request_context
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

# Keys to redact from request data
SENSITIVE_KEYS = {
    'password', 'password_hash', 'confirm_password', 'token', 'csrf_token', 'secret',
    'api_key', 'authorization', 'cookie', 'session'
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


def _request_context():
    """URL, method, sanitized payload and user of the current request"""
    if not has_request_context():
        return {}

    raw_data = {}
    if request.form:
        raw_data['form'] = request.form.to_dict()
    if request.args:
        raw_data['args'] = request.args.to_dict()
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        raw_data['json'] = payload

    return {
        'request_url': request.url[:512],
        'request_method': request.method,
        'request_data': json.dumps(_sanitize_data(raw_data))[:4000] if raw_data else None,
        'user_id': current_user.id if current_user.is_authenticated else None,
        'ip_address': request.remote_addr,
        'user_agent': str(request.user_agent)[:512] if request.user_agent else None,
        'blueprint': request.blueprints[0] if request.blueprints else None,
        'endpoint': request.endpoint,
    }


def log_error(error, status_code=500):
    """
    Log an error to the database.

    A failure to write the log entry is itself logged and never
    propagates into the error handler that called this.

    Args:
        error: The exception or error object
        status_code: HTTP status code (default 500)

    Returns:
        The ErrorLog row, or None when it could not be stored
    """
    from stockroom.models import db, ErrorLog

    tb = ''.join(traceback.format_exception(type(error), error, error.__traceback__)) \
        if isinstance(error, BaseException) else None

    error_log = ErrorLog(
        timestamp=datetime.utcnow(),
        error_type=type(error).__name__,
        error_message=str(error)[:2000],
        traceback=tb,
        status_code=status_code,
        is_resolved=False,
        **_request_context()
    )

    try:
        db.session.add(error_log)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Could not store error log entry: {e}")
        return None
    return error_log
