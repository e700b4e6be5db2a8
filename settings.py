"""
Configuration for the SignalFlow project.
"""

# Model configuration
CLASSIFICATION_MODEL = "claude-haiku-4-5-20251001"  # Per-item sentiment/theme/urgency tagging is a simple task, a small fast model is enough
SUMMARY_MODEL = "claude-haiku-4-5-20251001"  # Theme summaries are short (2-3 sentences) and built from at most 10 items

CLASSIFICATION_MAX_TOKENS = 200
SUMMARY_MAX_TOKENS = 300

# File paths (defaults, can be overridden via CLI)
DEFAULT_DB_FILE = "signalflow.db"
DEFAULT_SEED_FILE = "./data/seed_feedback.json"

# Aggregation limits
TOP_THEMES_LIMIT = 5
TREND_DAYS = 14
THEME_SAMPLE_LIMIT = 10
SUMMARY_MAX_TEXTS = 10
DEFAULT_LIST_LIMIT = 50
