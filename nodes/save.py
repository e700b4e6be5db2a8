from src.models import ClassificationResult, IngestionState
from src.store import FeedbackStore
from src.logger import log


def save(state: IngestionState, store: FeedbackStore) -> dict:
    """
    Write the classification onto the stored row and mark it analyzed.

    Store errors are not caught here; they propagate to the caller.
    """
    result = ClassificationResult.model_validate(state["classification"])
    store.update_classification(state["feedback_id"], result)

    log(f"✓ Saved: #{state['feedback_id']} → {result.theme} ({result.sentiment}, {result.urgency})")
    return {"status": "saved"}
