from langchain_anthropic import ChatAnthropic

from src.llm import CAPABILITY_ERRORS, run
from src.logger import log_failure
from prompts import SUMMARY_SYSTEM_PROMPT, SUMMARY_USER_PROMPT
from settings import SUMMARY_MODEL, SUMMARY_MAX_TOKENS, SUMMARY_MAX_TEXTS

# Instantiate once at module level
_llm = ChatAnthropic(model=SUMMARY_MODEL, max_tokens=SUMMARY_MAX_TOKENS)

FEEDBACK_SEPARATOR = "\n---\n"
EMPTY_SUMMARY = "No feedback to summarize."
UNAVAILABLE_SUMMARY = "Unable to generate AI summary. Please review the feedback manually."


def summarize_feedback(texts: list[str], theme: str) -> dict:
    """
    Summarize the most recent feedback for a theme in 2-3 sentences.

    Args:
        texts: Feedback contents, most recent first (only the first
               SUMMARY_MAX_TEXTS are used)
        theme: Theme label the texts belong to

    Returns:
        {"summary": str}, plus "error" when the model call failed
    """
    if not texts:
        return {"summary": EMPTY_SUMMARY}

    combined = FEEDBACK_SEPARATOR.join(texts[:SUMMARY_MAX_TEXTS])
    prompt = SUMMARY_USER_PROMPT.format(theme=theme, feedback=combined)

    try:
        summary = run(_llm, SUMMARY_SYSTEM_PROMPT, prompt)
    except CAPABILITY_ERRORS as e:
        log_failure("Summary call failed", e, context=f"Theme: {theme}")
        return {"summary": UNAVAILABLE_SUMMARY, "error": str(e)}
    except Exception as e:
        log_failure("Unexpected summary error", e, context=f"Theme: {theme}")
        return {"summary": UNAVAILABLE_SUMMARY, "error": str(e)}

    if not summary.strip():
        return {"summary": UNAVAILABLE_SUMMARY}

    return {"summary": summary.strip()}
