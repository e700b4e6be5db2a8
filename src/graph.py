from langgraph.graph import StateGraph, START, END

from src.models import IngestionState
from src.store import FeedbackStore
from nodes.ingest import ingest
from nodes.classify import classify
from nodes.save import save


def create_graph(store: FeedbackStore, enable_analysis: bool = True):
    """
    Create the ingestion workflow graph.

    Args:
        store: Record store the ingest and save nodes write to.
        enable_analysis: If True, runs ingest → classify → save.
                         If False, only stores items (they stay pending).
    """
    workflow = StateGraph(IngestionState)

    # Nodes that touch the store get it bound here
    workflow.add_node("ingest", lambda state: ingest(state, store))

    workflow.add_edge(START, "ingest")

    if enable_analysis:
        workflow.add_node("classify", classify)
        workflow.add_node("save", lambda state: save(state, store))

        workflow.add_edge("ingest", "classify")
        workflow.add_edge("classify", "save")
        workflow.add_edge("save", END)
    else:
        workflow.add_edge("ingest", END)

    return workflow.compile()


def initial_state(feedback: dict, feedback_id: int | None = None) -> IngestionState:
    """Fresh workflow state for one feedback item."""
    return {
        "feedback": feedback,
        "feedback_id": feedback_id,
        "classification": None,
        "status": "pending",
    }
