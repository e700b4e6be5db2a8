import json
import os
import sys
from dotenv import load_dotenv

load_dotenv()

from src import aggregate
from src.ingestion import ingest_feedback, backfill_pending, validate_items, load_seed
from src.logger import log, log_session_start, log_session_end
from src.models import ALL, SENTIMENTS, THEMES, URGENCIES, CHANNELS, InvalidInputError
from src.store import FeedbackStore
from settings import DEFAULT_DB_FILE, DEFAULT_SEED_FILE, DEFAULT_LIST_LIMIT

# Commands that call the model and therefore need an API key
LLM_COMMANDS = {"ingest", "backfill", "analyze", "summarize"}


def emit(data) -> None:
    """Print a JSON result to stdout."""
    print(json.dumps(data, indent=2))


def require_api_key() -> None:
    if not os.environ.get("ANTHROPIC_API_KEY"):
        log("Error: ANTHROPIC_API_KEY environment variable not set")
        log("\nPlease set your API key:")
        log("  export ANTHROPIC_API_KEY=your_key_here")
        log("\nOr add to .env file:")
        log("  ANTHROPIC_API_KEY=your_key_here")
        sys.exit(1)


def load_input_items(input_path: str) -> list:
    """Load and validate a JSON array of new feedback items, exiting on bad input."""
    try:
        with open(input_path) as file:
            items = json.load(file)
    except FileNotFoundError:
        log(f"Error: Input file not found: {input_path}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        log(f"Error: Invalid JSON in {input_path}: {e}")
        sys.exit(1)

    try:
        validate_items(items)
    except InvalidInputError as e:
        log(f"Error: {input_path}: {e}")
        sys.exit(1)

    if not items:
        log(f"Warning: {input_path} contains no items. Nothing to process.")
        sys.exit(0)

    return items


def run_command(args, store: FeedbackStore):
    """Dispatch one parsed command and return its JSON-serializable result."""
    command = args.command

    if command == "init":
        return {"initialized": args.db}

    if command == "seed":
        return {"inserted": load_seed(store, args.seed_file)}

    if command == "ingest":
        items = load_input_items(args.input_file)
        return ingest_feedback(store, items, enable_analysis=not args.no_analysis)

    if command == "backfill":
        return backfill_pending(store, limit=args.limit)

    if command == "analyze":
        # Live analyzer: nothing is stored
        from nodes.classify import classify_content
        return classify_content(args.text).to_record()

    if command == "overview":
        return aggregate.get_overview(store)

    if command == "themes":
        return aggregate.get_theme_table(store)

    if command == "top-themes":
        return aggregate.get_top_themes(store)

    if command == "trend":
        return aggregate.get_sentiment_trend(store)

    if command == "theme":
        return aggregate.get_theme_detail(store, args.theme)

    if command == "distributions":
        return aggregate.get_distributions(store)

    if command == "list":
        return aggregate.list_feedback(
            store,
            sentiment=args.sentiment,
            theme=args.theme,
            urgency=args.urgency,
            channel=args.channel,
            limit=args.limit,
        )

    if command == "summarize":
        from nodes.summarize import summarize_feedback
        detail = aggregate.get_theme_detail(store, args.theme)
        return summarize_feedback(detail["recent_feedback_texts"], args.theme)

    raise InvalidInputError(f"Unknown command: {command}")


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        description="Classify product feedback and compute dashboard views",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the database and load demo data
  python main.py seed

  # Store and classify new feedback
  python main.py ingest new_feedback.json

  # Store only, classify later
  python main.py ingest new_feedback.json --no-analysis
  python main.py backfill

  # Try the classifier without storing anything
  python main.py analyze "The docs for presigned URLs are missing CORS examples"

  # Dashboard views
  python main.py overview
  python main.py theme performance
  python main.py list --sentiment negative --urgency critical --limit 10
        """
    )
    parser.add_argument("--db", default=DEFAULT_DB_FILE,
                        help=f"SQLite database file (default: {DEFAULT_DB_FILE})")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the database schema")

    seed = sub.add_parser("seed", help="Load pre-classified demo feedback")
    seed.add_argument("seed_file", nargs="?", default=DEFAULT_SEED_FILE,
                      help=f"Seed JSON file (default: {DEFAULT_SEED_FILE})")

    ingest = sub.add_parser("ingest", help="Store and classify new feedback items")
    ingest.add_argument("input_file", help="Input JSON file with feedback items")
    ingest.add_argument("--no-analysis", action="store_true",
                        help="Store items without classifying them (they stay pending)")

    backfill = sub.add_parser("backfill", help="Classify stored items that are still pending")
    backfill.add_argument("--limit", type=int, default=None, help="Maximum items to classify")

    analyze = sub.add_parser("analyze", help="Classify a piece of text without storing it")
    analyze.add_argument("text", help="Feedback text")

    sub.add_parser("overview", help="Headline stats, top themes and channels")
    sub.add_parser("themes", help="Per-theme breakdown")
    sub.add_parser("top-themes", help="Themes needing attention")
    sub.add_parser("trend", help="Daily sentiment trend")
    sub.add_parser("distributions", help="Sentiment/urgency/value/theme counts")

    theme = sub.add_parser("theme", help="Drill-down for one theme")
    theme.add_argument("theme", help="Theme name")

    listing = sub.add_parser("list", help="List analyzed feedback, newest first")
    listing.add_argument("--sentiment", choices=SENTIMENTS + [ALL], default=None)
    listing.add_argument("--theme", choices=THEMES + [ALL], default=None)
    listing.add_argument("--urgency", choices=URGENCIES + [ALL], default=None)
    listing.add_argument("--channel", choices=CHANNELS + [ALL], default=None)
    listing.add_argument("--limit", type=int, default=DEFAULT_LIST_LIMIT,
                         help=f"Maximum items (default: {DEFAULT_LIST_LIMIT})")

    summarize = sub.add_parser("summarize", help="AI summary of recent feedback for a theme")
    summarize.add_argument("theme", help="Theme name")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    log_session_start(args.command)

    if args.command in LLM_COMMANDS and not (args.command == "ingest" and args.no_analysis):
        require_api_key()

    with FeedbackStore(args.db) as store:
        store.initialize_schema()
        try:
            result = run_command(args, store)
        except InvalidInputError as e:
            log(f"Error: {e}")
            sys.exit(1)
        except FileNotFoundError as e:
            log(f"Error: File not found: {e.filename}")
            sys.exit(1)
        except json.JSONDecodeError as e:
            log(f"Error: Invalid JSON: {e}")
            sys.exit(1)

    emit(result)
    log_session_end(args.command)


if __name__ == "__main__":
    main()
