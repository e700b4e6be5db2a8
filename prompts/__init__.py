"""
Prompt templates for SignalFlow.
"""

from prompts.prompt_classify import CLASSIFIER_SYSTEM_PROMPT, CLASSIFIER_USER_PROMPT
from prompts.prompt_summarize import SUMMARY_SYSTEM_PROMPT, SUMMARY_USER_PROMPT

__all__ = [
    "CLASSIFIER_SYSTEM_PROMPT",
    "CLASSIFIER_USER_PROMPT",
    "SUMMARY_SYSTEM_PROMPT",
    "SUMMARY_USER_PROMPT",
]
