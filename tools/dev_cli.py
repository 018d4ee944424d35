from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from autojournal.config.paths import data_dir, default_db_path, mapping_store_path


def _load_mapping_arg(raw: str | None) -> dict[str, str] | None:
    if not raw:
        return None
    candidate = Path(raw)
    text = candidate.read_text(encoding="utf-8") if candidate.exists() else raw
    loaded = json.loads(text)
    if not isinstance(loaded, dict):
        raise ValueError("Mapping must be a JSON object.")
    return {str(k): str(v) for k, v in loaded.items()}


def _cmd_init_db(_: argparse.Namespace) -> int:
    from autojournal.db.migrate import migrate, schema_status

    engine = migrate()
    for table, present in schema_status(engine).items():
        print(f"{table}: {'ok' if present else 'missing'}")
    print("Initialized database schema.")
    return 0


def _cmd_paths(_: argparse.Namespace) -> int:
    print(f"DATA_DIR={data_dir()}")
    print(f"DB_PATH={default_db_path()}")
    print(f"MAPPING_STORE={mapping_store_path()}")
    return 0


def _cmd_map_columns(args: argparse.Namespace) -> int:
    from autojournal.ingest.csv_import import load_trade_csv_preview
    from autojournal.ingest.csv_mapping import MappingStore

    store = MappingStore()
    preview = load_trade_csv_preview(args.csv, prior_mapping=_load_mapping_arg(args.mapping))
    saved = store.get(preview.columns, broker=args.broker)
    mapping = saved if saved and not args.mapping else preview.mapping
    print(
        json.dumps(
            {
                "columns": preview.columns,
                "mapping": mapping,
                "missing_required": preview.missing_required if mapping is preview.mapping else [],
                "signature": preview.signature,
            },
            indent=2,
        )
    )
    if args.save:
        store.save(preview.columns, mapping, broker=args.broker)
        print(f"Saved mapping for signature {preview.signature}.", file=sys.stderr)
    return 0


def _cmd_analyze(args: argparse.Namespace) -> int:
    from autojournal.analytics.behavior import detect_behavior_flags
    from autojournal.analytics.metrics import compute_metrics
    from autojournal.config.settings import get_settings
    from autojournal.ingest.csv_import import (
        MappingIncompleteError,
        NoValidTradesError,
        import_trades,
        read_trade_csv,
    )
    from autojournal.ingest.csv_mapping import propose_column_map

    columns, rows = read_trade_csv(args.csv)
    mapping = propose_column_map(columns, _load_mapping_arg(args.mapping))
    try:
        result = import_trades(columns, rows, mapping)
    except MappingIncompleteError as exc:
        print(f"{exc}. Pass --mapping to map them explicitly.", file=sys.stderr)
        return 2
    except NoValidTradesError as exc:
        print(str(exc), file=sys.stderr)
        return 3
    except ValueError as exc:
        print(f"Invalid column mapping: {exc}", file=sys.stderr)
        return 2

    metrics = compute_metrics(result.trades)
    payload = {
        "rows": result.total_rows,
        "kept": result.kept_count,
        "dropped": result.dropped,
        "metrics": metrics.to_dict(),
        "behavior_flags": [
            {"index": flag.index, "flag": flag.flag, "size_ratio": round(flag.size_ratio, 2)}
            for flag in detect_behavior_flags(result.trades)
        ],
    }

    settings = get_settings()
    if args.insights or settings.enable_ai_insights:
        from autojournal.assistant.insights import generate_insights

        insights = generate_insights(
            result.trades,
            model=settings.openai_model,
            metrics=metrics,
            cap=settings.insight_trade_cap,
        )
        payload["insights"] = insights.to_dict()

    print(json.dumps(payload, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Auto-journal developer CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sp_init_db = subparsers.add_parser("init-db", help="Create local database schema")
    sp_init_db.set_defaults(func=_cmd_init_db)

    sp_paths = subparsers.add_parser("paths", help="Print configured project paths")
    sp_paths.set_defaults(func=_cmd_paths)

    sp_map = subparsers.add_parser("map-columns", help="Propose a column mapping for a CSV")
    sp_map.add_argument("csv", help="Path to the broker CSV export.")
    sp_map.add_argument("--mapping", default="", help="Prior mapping as JSON or a JSON file path.")
    sp_map.add_argument("--broker", default="generic", help="Label used in the mapping store.")
    sp_map.add_argument("--save", action="store_true", help="Persist the mapping for this header set.")
    sp_map.set_defaults(func=_cmd_map_columns)

    sp_analyze = subparsers.add_parser("analyze", help="Normalize a CSV and print its metrics")
    sp_analyze.add_argument("csv", help="Path to the broker CSV export.")
    sp_analyze.add_argument("--mapping", default="", help="Mapping as JSON or a JSON file path.")
    sp_analyze.add_argument("--insights", action="store_true", help="Request AI insights for the batch.")
    sp_analyze.set_defaults(func=_cmd_analyze)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
