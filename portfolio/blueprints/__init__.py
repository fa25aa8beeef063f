"""
Portfolio Scenario Planner
Blueprint registry and shared request helpers.
"""

from flask import request


def json_body(required=True):
    """Return the JSON object body, ``{}`` when optional and absent, or None if malformed."""
    data = request.get_json(silent=True)
    if data is None and not required and not request.get_data():
        return {}
    return data if isinstance(data, dict) else None


def query_int(name):
    """Integer query parameter.  Returns (value, error) where error is a message or None."""
    raw = request.args.get(name)
    if raw in (None, ""):
        return None, None
    try:
        return int(raw), None
    except ValueError:
        return None, f"{name} must be an integer"
