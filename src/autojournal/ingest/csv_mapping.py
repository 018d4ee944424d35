from __future__ import annotations

import json
import re
from hashlib import sha256
from pathlib import Path
from typing import Any
from uuid import uuid4

from autojournal.config.paths import mapping_store_path
from autojournal.utils.dates import utc_now_naive

REQUIRED_FIELDS = ["datetime", "symbol", "qty", "price", "pnl"]

CANONICAL_FIELDS = [
    "datetime",
    "symbol",
    "side",
    "qty",
    "price",
    "pnl",
    "notes",
    "strategy",
    "tags",
    "buyFillId",
    "sellFillId",
    "image_url",
    "entryPrice",
    "exitPrice",
]

FIELD_LABELS: dict[str, str] = {
    "datetime": "Date/Time",
    "symbol": "Symbol",
    "side": "Side (Buy/Sell)",
    "qty": "Quantity",
    "price": "Price",
    "pnl": "Profit & Loss (P&L)",
    "notes": "Notes",
    "strategy": "Strategy",
    "tags": "Tags",
    "buyFillId": "Buy Fill ID",
    "sellFillId": "Sell Fill ID",
    "image_url": "Image URL",
    "entryPrice": "Entry Price",
    "exitPrice": "Exit Price",
}

EXTRA_SYNONYMS: dict[str, list[str]] = {
    "datetime": ["date", "time", "timestamp", "execution time", "date/time", "datetime"],
    "symbol": ["ticker", "instrument"],
    "side": ["action", "type", "direction", "buy/sell"],
    "qty": ["quantity", "size", "amount", "qty"],
    "price": ["fill price", "avg price", "execution price"],
    "pnl": [
        "profit",
        "loss",
        "p&l",
        "p/l",
        "profit/loss",
        "pnl",
        "net p/l",
        "net pnl",
        "realized p&l",
    ],
    "notes": ["note", "comment", "comments"],
    "strategy": ["setup", "playbook"],
    "tags": ["tag", "labels"],
    "buyFillId": ["buy fill id", "buy_fill_id", "entry fill id"],
    "sellFillId": ["sell fill id", "sell_fill_id", "exit fill id"],
    "image_url": ["image", "screenshot", "chart"],
    "entryPrice": ["buy price", "entry", "open price"],
    "exitPrice": ["sell price", "exit", "close price"],
}

FIELD_HELP: dict[str, str] = {
    "datetime": "When the trade was executed. Prefer the fill/close time.",
    "symbol": "Ticker or instrument. Exchange prefixes like NASDAQ: are stripped.",
    "side": "BUY or SELL. Optional: inferred from signed quantity or entry/exit prices.",
    "qty": "Number of shares/contracts. A negative quantity implies a SELL.",
    "price": "Execution price.",
    "pnl": "Realized profit or loss for the trade.",
    "notes": "Optional trade notes or comments.",
    "strategy": "Optional strategy or setup name.",
    "tags": "Optional comma or semicolon separated labels.",
    "buyFillId": "Optional broker fill id of the buy leg, used for duplicate detection.",
    "sellFillId": "Optional broker fill id of the sell leg, used for duplicate detection.",
    "image_url": "Optional link to a chart screenshot.",
    "entryPrice": "Optional entry/buy price, used to infer side when it is missing.",
    "exitPrice": "Optional exit/sell price, used to infer side when it is missing.",
}


def _normalize(text: str) -> str:
    return " ".join(text.strip().lower().replace("_", " ").split())


def _match_key(text: str) -> str:
    return "".join(ch for ch in text.strip().lower() if ch.isalnum())


def _tokenize(text: str) -> list[str]:
    return [token for token in re.split(r"[^a-z0-9]+", text.strip().lower()) if token]


def file_signature(columns: list[str]) -> str:
    canonical = "|".join(_normalize(str(c)) for c in columns)
    return sha256(canonical.encode("utf-8")).hexdigest()


def field_synonyms(field: str) -> set[str]:
    label = FIELD_LABELS.get(field, field)
    synonyms = {field.lower(), label.lower(), label.replace(" ", "").lower()}
    synonyms.update(alias.lower() for alias in EXTRA_SYNONYMS.get(field, []))
    return synonyms


def propose_column_map(
    headers: list[str], prior_mapping: dict[str, str] | None = None
) -> dict[str, str]:
    header_set = set(headers)
    mapping: dict[str, str] = {}
    for field, source in (prior_mapping or {}).items():
        if field in CANONICAL_FIELDS and source and source in header_set:
            mapping[field] = source

    for field in CANONICAL_FIELDS:
        if field in mapping:
            continue
        synonyms = field_synonyms(field)
        for header in headers:
            if str(header).strip().lower() in synonyms:
                mapping[field] = header
                break
    return mapping


def override_mapping(
    mapping: dict[str, str], field: str, header: str | None
) -> dict[str, str]:
    if field not in CANONICAL_FIELDS:
        raise ValueError(f"Unsupported canonical field '{field}'.")
    updated = dict(mapping)
    if header is None or not str(header).strip():
        updated.pop(field, None)
    else:
        updated[field] = header
    return updated


def missing_required_fields(
    mapping: dict[str, str], required_fields: list[str] | None = None
) -> list[str]:
    required = required_fields or REQUIRED_FIELDS
    return [field for field in required if not str(mapping.get(field) or "").strip()]


EXACT_MATCH_SCORE = 200
COMPACT_MATCH_SCORE = 180
TOKEN_MATCH_SCORE = 25
SUBSTRING_MATCH_SCORE = 15


def _candidate_score(column: str, aliases: set[str]) -> int:
    compact = _match_key(column)
    alias_compact = {_match_key(alias) for alias in aliases} - {""}
    alias_tokens = {token for alias in aliases for token in _tokenize(alias)}

    score = 0
    if _normalize(column) in {_normalize(alias) for alias in aliases}:
        score += EXACT_MATCH_SCORE
    if compact in alias_compact:
        score += COMPACT_MATCH_SCORE
    score += TOKEN_MATCH_SCORE * len(alias_tokens & set(_tokenize(column)))
    if compact and any(len(key) >= 3 and key in compact for key in alias_compact):
        score += SUBSTRING_MATCH_SCORE
    return score


def suggest_column_candidates(
    columns: list[str],
    canonical_field: str,
    *,
    limit: int = 3,
) -> list[str]:
    """Headers most likely to hold ``canonical_field``, best first, for manual overrides."""
    if canonical_field not in CANONICAL_FIELDS:
        return []

    aliases = field_synonyms(canonical_field)
    scored = [
        (_candidate_score(column, aliases), position, column)
        for position, column in enumerate(columns)
    ]
    ranked = sorted(scored, key=lambda item: (-item[0], item[1]))
    suggestions: list[str] = []
    for score, _, column in ranked:
        if score <= 0 or len(suggestions) >= limit:
            break
        if column not in suggestions:
            suggestions.append(column)
    return suggestions


def _entry_problem(field: str, source: Any, known_columns: set[str] | None) -> str | None:
    if field not in CANONICAL_FIELDS:
        return f"Unsupported canonical field '{field}'."
    if isinstance(source, (dict, list, tuple, set)):
        return f"Field '{field}' must map to a single header."
    if source is None or not str(source).strip():
        return None
    if known_columns is not None and str(source) not in known_columns:
        return f"Header '{source}' for field '{field}' is not present in the CSV."
    return None


def validate_mapping(
    mapping: dict[str, Any] | None,
    *,
    columns: list[str] | None = None,
    required_fields: list[str] | None = None,
) -> tuple[dict[str, str], list[str]]:
    """Return ``(cleaned, errors)``; blank sources are treated as unmapped.

    ``required_fields=[]`` skips the required-field check so callers can report
    missing fields separately.
    """
    if mapping is None:
        mapping = {}
    if not isinstance(mapping, dict):
        return {}, ["Mapping must be a dictionary."]

    known_columns = None if columns is None else {str(col) for col in columns}
    cleaned: dict[str, str] = {}
    errors: list[str] = []
    for raw_field, source in mapping.items():
        field = str(raw_field).strip()
        problem = _entry_problem(field, source, known_columns)
        if problem:
            errors.append(problem)
        elif source is not None and str(source).strip():
            cleaned[field] = str(source)

    claimed_by: dict[str, str] = {}
    for field, source in cleaned.items():
        if source in claimed_by:
            errors.append(f"Header '{source}' is mapped to both '{claimed_by[source]}' and '{field}'.")
        else:
            claimed_by[source] = field

    required = REQUIRED_FIELDS if required_fields is None else required_fields
    if required:
        errors.extend(
            f"Missing required field mapping '{field}'."
            for field in missing_required_fields(cleaned, required_fields=required)
        )
    return cleaned, errors


class MappingCache:
    """In-memory proposals keyed by header signature.

    Owned by the caller; nothing is shared between instances.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, columns: list[str]) -> dict[str, str] | None:
        cached = self._entries.get(file_signature(columns))
        return dict(cached) if cached is not None else None

    def put(self, columns: list[str], mapping: dict[str, str]) -> None:
        self._entries[file_signature(columns)] = dict(mapping)

    def propose(
        self, columns: list[str], prior_mapping: dict[str, str] | None = None
    ) -> dict[str, str]:
        if prior_mapping:
            return propose_column_map(columns, prior_mapping)
        cached = self.get(columns)
        if cached is not None:
            return cached
        mapping = propose_column_map(columns)
        self.put(columns, mapping)
        return dict(mapping)

    def clear(self) -> None:
        self._entries.clear()


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.parent / f".{path.name}.{uuid4().hex}.tmp"
    temp_path.write_text(
        json.dumps(payload, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    temp_path.replace(path)


class MappingStore:
    """Confirmed column mappings persisted as JSON, keyed by broker and header signature."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or mapping_store_path()

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}
        if not isinstance(loaded, dict):
            return {}
        return {
            key: value
            for key, value in loaded.items()
            if isinstance(key, str) and isinstance(value, dict)
        }

    def save(self, columns: list[str], mapping: dict[str, str], broker: str = "generic") -> str:
        broker_text = broker.strip().lower()
        if not broker_text:
            raise ValueError("Broker is required.")
        clean_columns = [str(col) for col in columns]
        cleaned_mapping, errors = validate_mapping(mapping, columns=clean_columns)
        if errors:
            raise ValueError("; ".join(errors))

        signature = file_signature(clean_columns)
        store = self.load()
        store[f"{broker_text}::{signature}"] = {
            "broker": broker_text,
            "signature": signature,
            "columns": clean_columns,
            "mapping": cleaned_mapping,
            "updated_at": utc_now_naive().isoformat(timespec="seconds"),
        }
        _write_json_atomic(self.path, store)
        return signature

    def get(self, columns: list[str], broker: str = "generic") -> dict[str, str] | None:
        clean_columns = [str(col) for col in columns]
        key = f"{broker.strip().lower()}::{file_signature(clean_columns)}"
        record = self.load().get(key)
        if not record:
            return None
        mapping = record.get("mapping")
        if not isinstance(mapping, dict):
            return None
        cleaned_mapping, errors = validate_mapping(mapping, columns=clean_columns)
        if errors:
            return None
        return cleaned_mapping
