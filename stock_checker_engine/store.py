"""JSON files that carry state between runs.

- optimized_weights.json: OptimizationParams plus `version`/`updatedAt`
- predictions_YYYY-MM-DD.json: one list of prediction dicts per run day
- calibration / accuracy / optimization outputs via `save_json`
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Union

from .models import PredictionRecord
from .params import OptimizationParams

CONFIG_VERSION = "1.0.0"
PREDICTIONS_PREFIX = "predictions_"

PathLike = Union[str, Path]

@dataclass(frozen=True)
class LoadedParams:
    """Params plus where they came from: "file" or "default" (with a reason)."""

    params: OptimizationParams
    source: str
    reason: str = ""

    @property
    def is_default(self) -> bool:
        return self.source == "default"

def save_json(path: PathLike, payload: Any) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(payload, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    return p

def save_params(path: PathLike, params: OptimizationParams) -> Path:
    payload = {
        "version": CONFIG_VERSION,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
        **params.to_dict(),
    }
    return save_json(path, payload)

def params_from_payload(payload: Mapping[str, Any]) -> OptimizationParams:
    """Accept the saved shape, an optimization result ({"bestParams": ...}) or
    the older layout that named indicator weights `weights`.
    """
    body: Dict[str, Any] = dict(payload.get("bestParams") or payload)
    body.pop("version", None)
    body.pop("updatedAt", None)
    if "weights" in body and "indicatorWeights" not in body:
        body["indicatorWeights"] = body.pop("weights")
    return OptimizationParams.from_dict(body)

def load_params(path: PathLike) -> LoadedParams:
    """Saved params, or defaults tagged with why the file was not used.

    Unknown weight keys in an existing file are not a fallback case: they
    raise ValueError so a typo does not silently revert to defaults.
    """
    p = Path(path)
    if not p.exists():
        return LoadedParams(OptimizationParams(), "default", f"{p} not found")
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logging.warning("unreadable params file %s: %s", p, exc)
        return LoadedParams(OptimizationParams(), "default", f"unreadable: {exc}")
    if not isinstance(payload, dict):
        return LoadedParams(OptimizationParams(), "default", "params file is not an object")

    version = payload.get("version")
    if "bestParams" not in payload and version != CONFIG_VERSION:
        logging.warning("params version mismatch: %s, using defaults", version)
        return LoadedParams(OptimizationParams(), "default", f"version mismatch: {version}")
    return LoadedParams(params_from_payload(payload), "file")

def predictions_path(feedback_dir: PathLike, day: str) -> Path:
    return Path(feedback_dir) / f"{PREDICTIONS_PREFIX}{day}.json"

def save_predictions(feedback_dir: PathLike, day: str, records: Sequence[Mapping[str, Any]]) -> Path:
    path = save_json(predictions_path(feedback_dir, day), list(records))
    logging.info("saved %d predictions to %s", len(records), path)
    return path

def _to_record(row: Mapping[str, Any]) -> PredictionRecord:
    score = row.get("score")
    return PredictionRecord(
        date=str(row["date"]),
        ticker=str(row["ticker"]),
        opinion=str(row["opinion"]),
        close=float(row["close"]),
        score=None if score is None else float(score),
    )

def load_predictions(feedback_dir: PathLike) -> List[PredictionRecord]:
    """Every prediction saved under `feedback_dir`; bad files/rows are logged and skipped."""
    d = Path(feedback_dir)
    if not d.exists():
        return []
    out: List[PredictionRecord] = []
    for f in sorted(d.glob(f"{PREDICTIONS_PREFIX}*.json")):
        try:
            rows = json.loads(f.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logging.warning("failed to parse %s: %s", f, exc)
            continue
        if not isinstance(rows, list):
            continue
        for row in rows:
            try:
                out.append(_to_record(row))
            except (KeyError, TypeError, ValueError) as exc:
                logging.warning("skipping malformed prediction in %s: %s", f, exc)
    return out
