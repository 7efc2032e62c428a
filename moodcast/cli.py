"""
cli.py

Command-line access to a user's mood model:

    moodcast train    --entries journal.json
    moodcast predict  --entries journal.json --sleep-quality 0.8
    moodcast insights --entries journal.json
    moodcast verify   --entries journal.json --plots out/
    moodcast info

Entries come from a JSON file (a list of API-style entries) or, with a token,
from the journal API.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from . import config
from .encoder import current_conditions_from_history
from .engine import ModelSession
from .entries import MoodEntry, sort_entries
from .errors import MoodcastError
from .history import TrainingHistory
from .remote import JournalClient, RemoteModelStore, TokenAuth
from .reporting import plot_backtest, plot_factor_importance, plot_loss_curve
from .storage import LocalModelCache

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_entries_file(path: str) -> List[MoodEntry]:
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("entries", [])
    return sort_entries(MoodEntry.from_dict(item) for item in payload)


def build_session(args) -> ModelSession:
    user_dir = Path(args.cache_dir) / args.user
    auth = TokenAuth(args.token)
    remote = RemoteModelStore(auth, base_url=args.api_url) if auth.is_authenticated() else None
    return ModelSession(
        cache=LocalModelCache(user_dir / "models"),
        auth=auth,
        remote=remote,
        config=config.TrainingConfig(seed=args.seed),
        history=TrainingHistory(user_dir / "history"),
    )


def get_entries(args) -> List[MoodEntry]:
    if args.entries:
        return load_entries_file(args.entries)
    auth = TokenAuth(args.token)
    if not auth.is_authenticated():
        raise SystemExit("Provide --entries or an API token (--token / MOODCAST_API_TOKEN)")
    return JournalClient(auth, base_url=args.api_url).get_entries()


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


# --------- COMMANDS ---------

def cmd_train(args) -> int:
    session = build_session(args)
    entries = get_entries(args)
    if not session.train(entries):
        print(f"Training skipped or failed ({len(entries)} entries; need {config.MIN_TRAINING_ENTRIES}).")
        return 1
    if not args.no_save and not session.save():
        print("Model trained but could not be saved.")
        return 1
    _print(session.model_info())
    return 0


def _require_model(session: ModelSession) -> bool:
    if session.load():
        return True
    print(f"No trained model available ({session.last_load_status.value}). Run 'moodcast train' first.")
    return False


def cmd_predict(args) -> int:
    session = build_session(args)
    if not _require_model(session):
        return 1
    conditions = current_conditions_from_history(get_entries(args), args.sleep_quality)
    _print({"predicted_mood": session.predict(conditions), "conditions": vars(conditions)})
    return 0


def cmd_insights(args) -> int:
    session = build_session(args)
    if not _require_model(session):
        return 1
    entries = get_entries(args)
    conditions = current_conditions_from_history(entries, args.sleep_quality)
    factors = session.analyze(entries)
    _print({
        "predicted_mood": session.predict(conditions),
        "factors": [f.to_dict() for f in factors] if factors else None,
        "recommendations": session.recommend(entries, conditions),
    })
    return 0


def cmd_verify(args) -> int:
    session = build_session(args)
    if not _require_model(session):
        return 1
    entries = get_entries(args)
    report = session.backtest(entries)
    manual = session.manual_test()

    result = {
        "average_error": report.average_error if report else None,
        "class_accuracy": report.class_accuracy if report else None,
        "good_conditions_prediction": manual.good_conditions_prediction,
        "bad_conditions_prediction": manual.bad_conditions_prediction,
        "difference": manual.difference,
        "distinguishes_conditions": manual.difference >= 1.0,
    }
    if args.plots:
        plots = []
        if report is not None:
            plots.append(plot_backtest(report.predictions, args.plots))
        factors = session.analyze(entries)
        if factors:
            plots.append(plot_factor_importance(factors, args.plots))
        epochs = session.history.get_epochs_df() if session.history else None
        if epochs is not None and not epochs.empty:
            plots.append(plot_loss_curve(epochs, args.plots))
        result["plots"] = plots
    _print(result)
    return 0


def cmd_info(args) -> int:
    session = build_session(args)
    session.load()
    info = session.model_info()
    info["load_status"] = session.last_load_status.value
    _print(info)
    return 0


# --------- MAIN ---------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="moodcast", description="Personal mood prediction.")
    parser.add_argument("--cache-dir", type=str, default=str(config.CACHE_DIR),
                        help="Folder holding per-user models and training history.")
    parser.add_argument("--user", type=str, default="local", help="User id (cache sub-folder).")
    parser.add_argument("--api-url", type=str, default=config.API_URL, help="Journal API base URL.")
    parser.add_argument("--token", type=str, default=config.API_TOKEN, help="API auth token.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for training.")
    parser.add_argument("--log-level", type=str, default="INFO")

    sub = parser.add_subparsers(dest="command", required=True)

    def with_entries(p):
        p.add_argument("--entries", type=str, default=None, help="JSON file with mood entries.")
        p.add_argument("--sleep-quality", type=float, default=0.5,
                       help="Last night's sleep quality (0-1) for current conditions.")
        return p

    p_train = with_entries(sub.add_parser("train", help="Train and save the model."))
    p_train.add_argument("--no-save", action="store_true")
    p_train.set_defaults(func=cmd_train)

    with_entries(sub.add_parser("predict", help="Predict the current mood.")).set_defaults(func=cmd_predict)
    with_entries(sub.add_parser("insights", help="Factor ranking and recommendations.")).set_defaults(
        func=cmd_insights)

    p_verify = with_entries(sub.add_parser("verify", help="Back-test and manual test."))
    p_verify.add_argument("--plots", type=str, default=None, help="Folder for PNG charts.")
    p_verify.set_defaults(func=cmd_verify)

    sub.add_parser("info", help="Show model status and metrics.").set_defaults(func=cmd_info)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    try:
        return args.func(args)
    except (MoodcastError, OSError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
