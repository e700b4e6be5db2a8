"""
Thin wrapper around the chat model: prompt in, one text blob out.

No structured-output mode is used here. Callers get whatever text the
model produced and are responsible for validating it.
"""

from anthropic import APIError, APIConnectionError, RateLimitError, APITimeoutError

# Errors raised by the model call itself (network, quota, timeout, server)
CAPABILITY_ERRORS = (APIError, APIConnectionError, RateLimitError, APITimeoutError)


def response_text(message) -> str:
    """Flatten a chat model reply into a single string."""
    content = getattr(message, "content", message)
    if content is None:
        return ""
    if isinstance(content, str):
        return content

    # Content blocks: keep the text parts only
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def run(llm, system_prompt: str, user_prompt: str) -> str:
    """Invoke the model once and return its reply text."""
    reply = llm.invoke([
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt}
    ])
    return response_text(reply)
