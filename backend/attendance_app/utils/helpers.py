"""Helper functions for the application."""
from datetime import date, datetime, time
from typing import Any, Dict, Optional, Tuple

from flask import current_app, jsonify, request

from attendance_app.utils.exceptions import ValidationError


def success_response(data: Any = None, message: str = None, status_code: int = 200, **extra):
    """Return consistent success response."""
    response = {'success': True}

    if message:
        response['message'] = message
    if data is not None:
        response['data'] = data
    response.update(extra)

    return jsonify(response), status_code


def error_response(message: str, status_code: int = 400, errors: list = None, **extra):
    """Return consistent error response."""
    response = {
        'success': False,
        'message': message
    }

    if errors:
        response['errors'] = errors
    response.update({key: value for key, value in extra.items() if value is not None})

    return jsonify(response), status_code


def get_json_body() -> Dict:
    """Return the request JSON object or raise a validation error."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be JSON")
    return data


def get_pagination_args(default_limit: int = None) -> Tuple[int, int]:
    """Read page/limit query parameters, clamped to the configured maximum."""
    default_limit = default_limit or current_app.config.get('DEFAULT_PAGE_SIZE', 20)
    max_limit = current_app.config.get('MAX_PAGE_SIZE', 100)

    page = request.args.get('page', 1, type=int) or 1
    limit = request.args.get('limit', default_limit, type=int) or default_limit

    return max(page, 1), min(max(limit, 1), max_limit)


def pagination_meta(pagination) -> Dict[str, int]:
    """Pagination block returned next to list data."""
    return {
        'page': pagination.page,
        'pages': pagination.pages,
        'total': pagination.total
    }


def parse_datetime(value: Optional[str], field: str = 'date') -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime string into a naive local datetime."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(
                f"Invalid {field}",
                errors=[{'field': field, 'message': f"Valid {field} is required"}]
            )

    # Offsets are folded into the server's local time so day windows line up
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def day_window(value: datetime) -> Tuple[datetime, datetime]:
    """Local calendar day containing ``value`` as an inclusive [start, end] pair."""
    start = datetime.combine(value.date(), time.min)
    end = datetime.combine(value.date(), time.max)
    return start, end


def parse_date_range(raw_start, raw_end) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Parse a startDate/endDate pair.

    A bare ``endDate`` (no time part) covers the whole of that day.
    """
    start = parse_datetime(raw_start, 'startDate')
    end = parse_datetime(raw_end, 'endDate')
    if end is not None and raw_end and isinstance(raw_end, str) and 'T' not in raw_end and ' ' not in raw_end.strip():
        end = day_window(end)[1]
    return start, end


def parse_date_range_args() -> Tuple[Optional[datetime], Optional[datetime]]:
    """Read startDate/endDate query parameters."""
    return parse_date_range(request.args.get('startDate'), request.args.get('endDate'))
