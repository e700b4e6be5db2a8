from datetime import datetime, timezone

from src.models import CHANNELS, IngestionState, InvalidInputError, NewFeedback
from src.store import FeedbackStore
from src.logger import log

# Same text format SQLite's datetime('now') produces, so stored values sort and DATE() cleanly
STORED_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_created_at(value) -> str | None:
    """
    Convert a caller-supplied ISO 8601 timestamp to the stored UTC format.

    Naive timestamps are taken as UTC. None means "let the store assign now".

    Raises:
        InvalidInputError: if the value isn't an ISO 8601 date/time string
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"created_at must be an ISO 8601 string, got {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidInputError(f"created_at is not an ISO 8601 timestamp: {value!r}") from None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime(STORED_TIMESTAMP_FORMAT)


def validate_feedback(feedback: NewFeedback) -> None:
    """Reject feedback that can't be stored: no content, unknown channel or bad created_at."""
    content = feedback.get("content")
    if not isinstance(content, str) or not content.strip():
        raise InvalidInputError("Content required")

    channel = feedback.get("channel")
    if channel not in CHANNELS:
        raise InvalidInputError(f"Unknown channel: {channel!r} (expected one of {CHANNELS})")

    normalize_created_at(feedback.get("created_at"))


def ingest(state: IngestionState, store: FeedbackStore) -> dict:
    """
    Store a new feedback item in the pending (not analyzed) state.

    Items that already have an id (backfill of pending rows) are left as is.

    Returns dict with feedback_id and status.
    """
    if state.get("feedback_id") is not None:
        return {"status": "stored"}

    feedback = state["feedback"]
    validate_feedback(feedback)

    feedback_id = store.insert({
        "channel": feedback["channel"],
        "content": feedback["content"],
        "title": feedback.get("title"),
        "author": feedback.get("author"),
        "created_at": normalize_created_at(feedback.get("created_at")),
    })

    log(f"✓ Stored: #{feedback_id} from {feedback['channel']}")
    return {"feedback_id": feedback_id, "status": "stored"}
