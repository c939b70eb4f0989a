"""
Request parsing helpers shared by the API blueprints.

Everything raises ValidationError, which the app renders as a 400.
"""
from datetime import date, datetime, timezone

from flask import request

from ledger.errors import ValidationError

MAX_PAGE_SIZE = 100


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def require_fields(data, *names):
    missing = [n for n in names if data.get(n) in (None, '')]
    if missing:
        raise ValidationError(f'Missing required fields: {", ".join(missing)}')


def parse_int(value, name, minimum=None):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{name} must be an integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')
    if isinstance(value, float) and value != number:
        raise ValidationError(f'{name} must be an integer')
    if minimum is not None and number < minimum:
        raise ValidationError(f'{name} must be >= {minimum}')
    return number


def parse_crd(value, name='candidate_crd'):
    crd = parse_int(value, name, minimum=1)
    if crd is None:
        raise ValidationError(f'{name} is required')
    return crd


def parse_date(value, name):
    if value in (None, ''):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f'{name} must be an ISO date (YYYY-MM-DD)')


def parse_datetime(value, name):
    """ISO-8601 timestamp; a trailing Z is accepted and naive values are taken as UTC."""
    if value in (None, ''):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{name} must be an ISO-8601 timestamp')
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def paging():
    skip = parse_int(request.args.get('skip'), 'skip', minimum=0) or 0
    take = parse_int(request.args.get('take'), 'take', minimum=1) or 50
    return skip, min(take, MAX_PAGE_SIZE)
