"""Formatting of method call responses for display."""

import json


def make_readable(body: str) -> str:
    """
    Try to make a response more human-readable.

    JSON is re-indented with unicode left unescaped; anything else is
    returned unchanged.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return body
    return json.dumps(data, indent=4, ensure_ascii=False)
