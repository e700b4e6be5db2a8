import json
import re

from langchain_anthropic import ChatAnthropic
from pydantic import ValidationError

from src.models import ClassificationResult, IngestionState, InvalidInputError
from src.llm import CAPABILITY_ERRORS, run
from src.logger import log, log_failure
from prompts import CLASSIFIER_SYSTEM_PROMPT, CLASSIFIER_USER_PROMPT
from settings import CLASSIFICATION_MODEL, CLASSIFICATION_MAX_TOKENS

# Instantiate once at module level
_llm = ChatAnthropic(model=CLASSIFICATION_MODEL, max_tokens=CLASSIFICATION_MAX_TOKENS)

# Greedy: from the first "{" to the last "}", so prose before/after is dropped
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

PARSE_FAILURE_SUMMARY = "Unable to parse AI response"
UNAVAILABLE_SUMMARY = "AI analysis unavailable"


def fallback_result(summary: str = PARSE_FAILURE_SUMMARY, **diagnostics) -> ClassificationResult:
    """The fixed neutral classification used whenever the model can't be trusted."""
    return ClassificationResult(
        sentiment="neutral",
        sentiment_score=0.0,
        theme="other",
        urgency="medium",
        summary=summary,
        **diagnostics,
    )


def extract_json(response: str) -> str | None:
    """Return the outermost {...} span of the response, or None if there isn't one."""
    if not response:
        return None
    match = _JSON_OBJECT.search(response)
    return match.group(0) if match else None


def parse_classification(response: str) -> ClassificationResult | None:
    """
    Extract and validate a classification from raw model output.

    Returns None when no JSON object is found, it doesn't decode, or any
    enum field is outside its closed set. Invalid values are never coerced.
    """
    candidate = extract_json(response)
    if candidate is None:
        return None

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    try:
        return ClassificationResult.model_validate({
            "sentiment": data.get("sentiment"),
            "sentiment_score": data.get("sentiment_score", 0.0),
            "theme": data.get("theme"),
            "urgency": data.get("urgency"),
            "summary": data.get("summary") or "",
        })
    except ValidationError:
        return None


def classify_content(content: str) -> ClassificationResult:
    """
    Classify one piece of feedback text.

    Makes exactly one model call. Never raises for model problems: a failed
    call, unparsable output or out-of-domain values all produce the
    fallback result.

    Raises:
        InvalidInputError: if content is empty (checked before calling the model)
    """
    if not content or not content.strip():
        raise InvalidInputError("Content required")

    try:
        response = run(_llm, CLASSIFIER_SYSTEM_PROMPT, CLASSIFIER_USER_PROMPT.format(content=content))
    except CAPABILITY_ERRORS as e:
        log_failure("Classification call failed", e)
        return fallback_result(UNAVAILABLE_SUMMARY, error=str(e))
    except Exception as e:
        # Unexpected error: still return a usable classification
        log_failure("Unexpected classification error", e)
        return fallback_result(UNAVAILABLE_SUMMARY, error=str(e))

    result = parse_classification(response)
    if result is None:
        log("\n Could not parse classifier output, using fallback")
        log(f"    Response: {response[:200]!r}")
        return fallback_result(raw_response=response)

    return result


def classify(state: IngestionState) -> dict:
    """
    Classify the stored feedback item.

    Returns dict with classification (a ClassificationResult dict) and status.
    """
    result = classify_content(state["feedback"]["content"])
    return {
        "classification": result.to_record(),
        "status": "classified",
    }
