from typing import Optional

from src.models import ALL, SENTIMENTS, THEMES, URGENCIES, CHANNELS, InvalidInputError
from settings import DEFAULT_LIST_LIMIT

# Recognized filter keys -> (column, allowed values). Order is the order
# conditions appear in the generated WHERE clause.
FILTER_COLUMNS = {
    "sentiment": ("sentiment", SENTIMENTS),
    "theme": ("theme", THEMES),
    "urgency": ("urgency", URGENCIES),
    "channel": ("channel", CHANNELS),
}


def build_feedback_query(
    sentiment: Optional[str] = None,
    theme: Optional[str] = None,
    urgency: Optional[str] = None,
    channel: Optional[str] = None,
    limit: Optional[int] = None,
) -> tuple[str, list]:
    """
    Build the parameterized listing query for analyzed feedback.

    Each filter is either None, "all" (both meaning no constraint) or a
    value from its closed set. Values only ever travel as bound parameters.

    Returns:
        (sql, params) ready for FeedbackStore.query()

    Raises:
        InvalidInputError: unknown filter value or a non-positive limit
    """
    given = {"sentiment": sentiment, "theme": theme, "urgency": urgency, "channel": channel}

    conditions = ["analyzed = 1"]
    params = []

    for key, (column, allowed) in FILTER_COLUMNS.items():
        value = given[key]
        if value is None or value == "" or value == ALL:
            continue
        if value not in allowed:
            raise InvalidInputError(f"Unknown {key} filter: {value!r} (expected one of {allowed} or '{ALL}')")
        conditions.append(f"{column} = ?")
        params.append(value)

    if limit is None:
        limit = DEFAULT_LIST_LIMIT
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidInputError(f"limit must be a positive integer, got {limit!r}")

    sql = (
        "SELECT * FROM feedback WHERE " + " AND ".join(conditions)
        + " ORDER BY created_at DESC, id DESC LIMIT ?"
    )
    params.append(limit)

    return sql, params
