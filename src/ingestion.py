import json

from src.graph import create_graph, initial_state
from nodes.ingest import normalize_created_at
from src.logger import log
from src.models import (
    CHANNELS, SENTIMENTS, THEMES, URGENCIES, VALUE_SCORES, InvalidInputError,
)
from src.store import FeedbackStore

REQUIRED_FIELDS = ["channel", "content"]


def ingest_feedback(store: FeedbackStore, items: list[dict], enable_analysis: bool = True) -> list[dict]:
    """
    Run each new feedback item through the ingestion workflow.

    Returns:
        One dict per item: {"id", "status", "classification"}
    """
    graph = create_graph(store, enable_analysis=enable_analysis)

    results = []
    for i, item in enumerate(items, 1):
        log(f"\n Ingesting [{i}/{len(items)}] ...")
        final = graph.invoke(initial_state(item))
        results.append({
            "id": final["feedback_id"],
            "status": final["status"],
            "classification": final.get("classification"),
        })
    return results


def backfill_pending(store: FeedbackStore, limit: int | None = None) -> list[dict]:
    """
    Classify stored items that are still pending, oldest first.

    Raises:
        InvalidInputError: if limit is given and is not a positive integer

    Returns:
        One dict per item: {"id", "status", "classification"}
    """
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 1):
        raise InvalidInputError(f"limit must be a positive integer, got {limit!r}")

    sql = "SELECT * FROM feedback WHERE analyzed = 0 ORDER BY created_at ASC, id ASC"
    params = []
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    pending = store.query(sql, params)

    if not pending:
        log("No pending feedback to analyze.")
        return []

    log(f"Analyzing {len(pending)} pending item(s)...")
    graph = create_graph(store, enable_analysis=True)

    results = []
    for row in pending:
        final = graph.invoke(initial_state(row, feedback_id=row["id"]))
        results.append({
            "id": row["id"],
            "status": final["status"],
            "classification": final.get("classification"),
        })
    return results


def validate_items(items) -> None:
    """
    Check the structure of an import file before anything is stored.

    Raises:
        InvalidInputError: describing the first problem found
    """
    if not isinstance(items, list):
        raise InvalidInputError("Input must contain a JSON array of feedback items")

    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidInputError(f"Item at index {i} is not a valid object")

        missing_fields = [field for field in REQUIRED_FIELDS if not item.get(field)]
        if missing_fields:
            raise InvalidInputError(
                f"Item at index {i} missing required fields: {missing_fields}"
            )

        if item["channel"] not in CHANNELS:
            raise InvalidInputError(f"Item at index {i} has unknown channel: {item['channel']!r}")

        try:
            normalize_created_at(item.get("created_at"))
        except InvalidInputError as e:
            raise InvalidInputError(f"Item at index {i}: {e}") from None


def _check_seed_value(item: dict, key: str, allowed: list, index: int) -> None:
    if key in item and item[key] not in allowed:
        raise InvalidInputError(f"Seed item at index {index} has invalid {key}: {item[key]!r}")


def load_seed(store: FeedbackStore, seed_path: str) -> int:
    """
    Load pre-classified demo feedback from a JSON file.

    Seed items carry their own sentiment/theme/urgency/value_score and
    created_at and are stored as analyzed.

    Returns:
        Number of items inserted
    """
    with open(seed_path, encoding="utf-8") as f:
        items = json.load(f)

    validate_items(items)
    for i, item in enumerate(items):
        for key in ("sentiment", "theme", "urgency"):
            if key not in item:
                raise InvalidInputError(f"Seed item at index {i} missing {key}")
        _check_seed_value(item, "sentiment", SENTIMENTS, i)
        _check_seed_value(item, "theme", THEMES, i)
        _check_seed_value(item, "urgency", URGENCIES, i)
        _check_seed_value(item, "value_score", VALUE_SCORES, i)

        score = item.get("sentiment_score", 0)
        if isinstance(score, bool) or not isinstance(score, (int, float)) or score != score:
            raise InvalidInputError(f"Seed item at index {i} has invalid sentiment_score: {score!r}")

    for item in items:
        store.insert({
            "created_at": normalize_created_at(item.get("created_at")),
            "channel": item["channel"],
            "title": item.get("title"),
            "content": item["content"],
            "author": item.get("author"),
            "sentiment": item["sentiment"],
            "sentiment_score": max(-1.0, min(1.0, float(item.get("sentiment_score", 0)))),
            "theme": item["theme"],
            "urgency": item["urgency"],
            "value_score": item.get("value_score"),
            "analyzed": 1,
        })

    log(f"✓ Seeded {len(items)} feedback items from {seed_path}")
    return len(items)
