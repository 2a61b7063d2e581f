"""
Row-to-JSON helpers shared by the services.

SQLite hands back TIMESTAMP/DATE columns as strings while PostgreSQL returns
datetime/date objects; everything leaving the API goes through these so both
backends produce the same ISO strings.
"""
import json
from datetime import date, datetime


def format_date(value):
    """Format a date/datetime object or string to YYYY-MM-DD (None stays None)."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime('%Y-%m-%d')
    value = str(value)
    return value[:10] if len(value) >= 10 else value


def format_datetime(value):
    """Format a datetime object or string to ISO 8601 (None stays None)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).isoformat()
    return str(value).replace(' ', 'T', 1)


def json_serial(obj):
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")


def safe_tojson(value) -> str:
    """Safely convert value to JSON, handling datetime objects."""
    return json.dumps(value, default=json_serial)


def load_json_list(value) -> list:
    """Decode a JSON array column; empty or NULL gives []."""
    if not value:
        return []
    if isinstance(value, list):
        return value
    decoded = json.loads(value)
    return decoded if isinstance(decoded, list) else []


def user_ref(row, prefix: str):
    """Build the populated user reference {id, fullName, email, department}.

    row holds the joined columns <prefix>_id, <prefix>_name, <prefix>_email
    and <prefix>_department; a NULL id means the reference is unset.
    """
    user_id = row[f"{prefix}_id"]
    if user_id is None:
        return None
    return {
        "id": user_id,
        "fullName": row[f"{prefix}_name"],
        "email": row[f"{prefix}_email"],
        "department": row[f"{prefix}_department"],
    }
