"""
Helper Utilities
Common parsing and validation functions used across the application
"""

import re
from datetime import datetime, date, timezone


EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def clean_text(value):
    """
    Strip a submitted form value

    Returns:
        str: The stripped value, or '' for None
    """
    if value is None:
        return ''
    return str(value).strip()


def parse_int(value, default=None):
    """
    Parse an integer from a form value

    Args:
        value: Raw value (str, int or None)
        default: Returned when the value is blank or unparsable

    Returns:
        int or default
    """
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_float(value, default=0.0):
    """Parse a float from a form value, falling back to default"""
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_datetime(value):
    """
    Parse an ISO date or datetime

    Args:
        value: datetime, date, ISO string or None

    Returns:
        datetime or None
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    # Stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def is_valid_email(email):
    return bool(email and EMAIL_PATTERN.match(email))


def allowed_file(filename):
    """
    Check if file extension is allowed

    Args:
        filename: Name of file to check

    Returns:
        bool: True if extension is allowed
    """
    from flask import current_app

    if '.' not in filename:
        return False

    ext = filename.rsplit('.', 1)[1].lower()
    return ext in current_app.config.get('ALLOWED_EXTENSIONS', set())


def request_data():
    """Submitted fields from a JSON body or a form post"""
    from flask import request

    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()
