"""
Aggregate views over classified feedback for the dashboard.

Every view is recomputed from the store at call time and only reads rows
with analyzed = 1 (channel counts in the overview are the one exception).
Counts and means are wrapped in COALESCE so an empty set reports 0
instead of NULL.
"""

from src.filters import build_feedback_query
from src.models import UNCATEGORIZED_THEME, InvalidInputError
from src.store import FeedbackStore
from settings import TOP_THEMES_LIMIT, TREND_DAYS, THEME_SAMPLE_LIMIT

# Urgency severity rank used to order samples, most severe first
URGENCY_RANK_SQL = """
    CASE urgency
        WHEN 'critical' THEN 1
        WHEN 'high' THEN 2
        WHEN 'medium' THEN 3
        ELSE 4
    END"""

_URGENT_COUNT_SQL = "COALESCE(SUM(CASE WHEN urgency IN ('critical', 'high') THEN 1 ELSE 0 END), 0)"


def _count_when(column: str, value: str) -> str:
    return f"COALESCE(SUM(CASE WHEN {column} = '{value}' THEN 1 ELSE 0 END), 0)"


def _to_item(row: dict) -> dict:
    row["analyzed"] = bool(row["analyzed"])
    return row


def get_top_themes(store: FeedbackStore) -> list[dict]:
    """
    Themes needing attention: most urgent items first, then most items.

    Returns:
        Up to TOP_THEMES_LIMIT dicts with theme, count, avg_sentiment, urgent_count
    """
    return store.query(f"""
        SELECT
            theme,
            COUNT(*) AS count,
            COALESCE(AVG(sentiment_score), 0) AS avg_sentiment,
            {_URGENT_COUNT_SQL} AS urgent_count
        FROM feedback
        WHERE analyzed = 1 AND theme != ?
        GROUP BY theme
        ORDER BY urgent_count DESC, count DESC
        LIMIT ?
    """, (UNCATEGORIZED_THEME, TOP_THEMES_LIMIT))


def get_overview(store: FeedbackStore) -> dict:
    """
    Headline numbers for the dashboard.

    Returns:
        dict with:
            stats: total_feedback, positive/neutral/negative, critical_count,
                   high_count, avg_sentiment (0 when there is no data)
            top_themes: see get_top_themes()
            channels: count per channel over all rows, analyzed or not
            top_theme: most discussed theme, or None
    """
    stats = store.first(f"""
        SELECT
            COUNT(*) AS total_feedback,
            {_count_when('sentiment', 'positive')} AS positive,
            {_count_when('sentiment', 'neutral')} AS neutral,
            {_count_when('sentiment', 'negative')} AS negative,
            {_count_when('urgency', 'critical')} AS critical_count,
            {_count_when('urgency', 'high')} AS high_count,
            COALESCE(AVG(sentiment_score), 0) AS avg_sentiment
        FROM feedback
        WHERE analyzed = 1
    """)

    channels = store.query("""
        SELECT channel, COUNT(*) AS count
        FROM feedback
        GROUP BY channel
        ORDER BY count DESC, channel
    """)

    top_theme = store.first(f"""
        SELECT
            theme,
            COUNT(*) AS count,
            COALESCE(AVG(sentiment_score), 0) AS avg_sentiment,
            {_count_when('sentiment', 'positive')} AS positive,
            {_count_when('sentiment', 'negative')} AS negative,
            {_URGENT_COUNT_SQL} AS urgent_count
        FROM feedback
        WHERE analyzed = 1 AND theme != ?
        GROUP BY theme
        ORDER BY count DESC
        LIMIT 1
    """, (UNCATEGORIZED_THEME,))

    return {
        "stats": stats,
        "top_themes": get_top_themes(store),
        "channels": channels,
        "top_theme": top_theme,
    }


def get_theme_table(store: FeedbackStore) -> list[dict]:
    """Full per-theme breakdown, largest theme first."""
    return store.query(f"""
        SELECT
            theme,
            COUNT(*) AS total,
            {_count_when('sentiment', 'positive')} AS positive,
            {_count_when('sentiment', 'negative')} AS negative,
            {_count_when('urgency', 'critical')} AS critical,
            {_count_when('urgency', 'high')} AS high,
            COALESCE(AVG(sentiment_score), 0) AS avg_sentiment
        FROM feedback
        WHERE analyzed = 1 AND theme != ?
        GROUP BY theme
        ORDER BY total DESC
    """, (UNCATEGORIZED_THEME,))


def get_sentiment_trend(store: FeedbackStore) -> list[dict]:
    """
    Daily sentiment for the most recent TREND_DAYS days that have data.

    Fetched newest-first so LIMIT keeps the latest days, then reversed:
    callers chart the result and need ascending dates.
    """
    newest_first = store.query(f"""
        SELECT
            DATE(created_at) AS date,
            COUNT(*) AS total,
            COALESCE(AVG(sentiment_score), 0) AS avg_sentiment,
            {_count_when('sentiment', 'positive')} AS positive,
            {_count_when('sentiment', 'negative')} AS negative
        FROM feedback
        WHERE analyzed = 1
        GROUP BY DATE(created_at)
        ORDER BY date DESC
        LIMIT ?
    """, (TREND_DAYS,))
    return list(reversed(newest_first))


def get_theme_detail(store: FeedbackStore, theme: str) -> dict:
    """
    Drill-down for one theme.

    Returns:
        dict with theme, stats (incl. all four urgency levels), channels,
        samples (most severe, then newest), trend (ascending dates) and
        recent_feedback_texts (newest first, input for summarization)

    Raises:
        InvalidInputError: if theme is missing or empty
    """
    if not theme or not theme.strip():
        raise InvalidInputError("Theme parameter required")

    stats = store.first(f"""
        SELECT
            COUNT(*) AS total,
            COALESCE(AVG(sentiment_score), 0) AS avg_sentiment,
            {_count_when('sentiment', 'positive')} AS positive,
            {_count_when('sentiment', 'neutral')} AS neutral,
            {_count_when('sentiment', 'negative')} AS negative,
            {_count_when('urgency', 'critical')} AS critical,
            {_count_when('urgency', 'high')} AS high,
            {_count_when('urgency', 'medium')} AS medium,
            {_count_when('urgency', 'low')} AS low
        FROM feedback
        WHERE theme = ? AND analyzed = 1
    """, (theme,))

    channels = store.query("""
        SELECT channel, COUNT(*) AS count
        FROM feedback
        WHERE theme = ? AND analyzed = 1
        GROUP BY channel
        ORDER BY count DESC, channel
    """, (theme,))

    samples = store.query(f"""
        SELECT *
        FROM feedback
        WHERE theme = ? AND analyzed = 1
        ORDER BY {URGENCY_RANK_SQL},
            created_at DESC
        LIMIT ?
    """, (theme, THEME_SAMPLE_LIMIT))

    trend = store.query(f"""
        SELECT
            DATE(created_at) AS date,
            COUNT(*) AS count,
            COALESCE(AVG(sentiment_score), 0) AS avg_sentiment,
            {_count_when('sentiment', 'positive')} AS positive,
            {_count_when('sentiment', 'neutral')} AS neutral,
            {_count_when('sentiment', 'negative')} AS negative
        FROM feedback
        WHERE theme = ? AND analyzed = 1
        GROUP BY DATE(created_at)
        ORDER BY date DESC
        LIMIT ?
    """, (theme, TREND_DAYS))

    recent = store.query("""
        SELECT content
        FROM feedback
        WHERE theme = ? AND analyzed = 1
        ORDER BY created_at DESC, id DESC
        LIMIT ?
    """, (theme, THEME_SAMPLE_LIMIT))

    return {
        "theme": theme,
        "stats": stats,
        "channels": channels,
        "samples": [_to_item(row) for row in samples],
        "trend": list(reversed(trend)),
        "recent_feedback_texts": [row["content"] for row in recent],
    }


def get_distributions(store: FeedbackStore) -> dict:
    """Group-by counts over analyzed feedback for the pie charts."""
    sentiment = store.query("""
        SELECT sentiment, COUNT(*) AS count
        FROM feedback
        WHERE analyzed = 1
        GROUP BY sentiment
    """)

    urgency = store.query("""
        SELECT urgency, COUNT(*) AS count
        FROM feedback
        WHERE analyzed = 1
        GROUP BY urgency
    """)

    value = store.query("""
        SELECT value_score, COUNT(*) AS count
        FROM feedback
        WHERE analyzed = 1
        GROUP BY value_score
    """)

    theme = store.query("""
        SELECT theme, COUNT(*) AS count
        FROM feedback
        WHERE analyzed = 1 AND theme != ?
        GROUP BY theme
        ORDER BY count DESC
    """, (UNCATEGORIZED_THEME,))

    return {
        "sentiment": sentiment,
        "urgency": urgency,
        "value": value,
        "theme": theme,
    }


def list_feedback(store: FeedbackStore, **filters) -> list[dict]:
    """Analyzed feedback matching the filters, newest first (see build_feedback_query)."""
    sql, params = build_feedback_query(**filters)
    return [_to_item(row) for row in store.query(sql, params)]
