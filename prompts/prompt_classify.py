CLASSIFIER_SYSTEM_PROMPT = "You are a product feedback analyzer. Always respond with valid JSON only."

# Filled with str.format(content=...); literal braces are doubled
CLASSIFIER_USER_PROMPT = """Analyze this product feedback and respond in JSON format only:

Feedback: "{content}"

Respond with exactly this JSON structure (no other text):
{{
  "sentiment": "positive" or "neutral" or "negative",
  "sentiment_score": number from -1.0 to 1.0,
  "theme": one of ["performance", "pricing", "documentation", "developer-experience", "reliability", "feature-request", "other"],
  "urgency": "low" or "medium" or "high" or "critical",
  "summary": "one sentence summary of the feedback"
}}

URGENCY LEVELS:
- critical: Blocks production use, causes data loss or unexpected large costs, needs action now
- high: Breaks a core workflow for the user, no reasonable workaround
- medium: Degrades the experience but a workaround exists
- low: Questions, praise, nice-to-have suggestions

Use "other" only when none of the listed themes fit.
"""
