from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .backtester import Backtester
from .calibrator import fit_platt_scaling
from .config import EngineConfig
from .data import fetch_candles, fetch_fear_greed, load_candles_csv
from .db import connect, ensure_schema, fetch_candles as db_fetch_candles, upsert_candles
from .evaluator import build_price_history, calibration_samples, match_and_evaluate
from .models import Candle, PredictionRecord
from .notifier import notify_actionable
from .optimizer import InsufficientDataError, OptimizationError, RandomSearch, optimize
from .params import OptimizationParams
from .recommender import CandleLoader, recommend_ticker, to_prediction_record
from .store import load_params, load_predictions, save_json, save_params, save_predictions

def _p(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))

def _fail(error: str, **extra: Any) -> None:
    _p({"ok": False, "error": error, **extra})
    raise SystemExit(1)

def _split_tickers(raw: Optional[str]) -> List[str]:
    return [t.strip().upper() for t in (raw or "").split(",") if t.strip()]

def _make_loader(args: argparse.Namespace, cfg: EngineConfig) -> CandleLoader:
    if not getattr(args, "use_db", False):
        return fetch_candles

    def _from_db(symbol: str, days: int) -> List[Candle]:
        conn = connect(cfg.db_path)
        try:
            ensure_schema(conn, cfg.table)
            start = (date.today() - timedelta(days=int(days))).isoformat()
            return [c for c in db_fetch_candles(conn, symbol, table=cfg.table) if c.date >= start]
        finally:
            conn.close()

    return _from_db

def _load_series(args: argparse.Namespace, cfg: EngineConfig, symbol: str, days: int) -> List[Candle]:
    if getattr(args, "csv", None):
        return load_candles_csv(args.csv)
    return _make_loader(args, cfg)(symbol, days)

def _params_for(args: argparse.Namespace, cfg: EngineConfig) -> OptimizationParams:
    path = getattr(args, "params", None) or cfg.params_path
    loaded = load_params(path)
    if loaded.is_default:
        logging.info("using default params (%s)", loaded.reason)
    return loaded.params

def run_predict(args: argparse.Namespace, cfg: EngineConfig) -> List[Dict[str, Any]]:
    tickers = _split_tickers(args.ticker)
    if not tickers:
        _fail("ticker_required", hint="use --ticker TSLA,PLTR")
    params = _params_for(args, cfg)
    sentiment = fetch_fear_greed(cfg.fear_greed_url, timeout=cfg.http_timeout)
    loader = _make_loader(args, cfg)

    results = [
        recommend_ticker(t, params, sentiment, days=cfg.history_days, loader=loader)
        for t in tickers
    ]
    ok = [r for r in results if r.get("ok")]
    ok.sort(key=lambda r: r["ticker"], reverse=(args.sort == "desc"))

    webhook = args.slack_webhook or cfg.slack_webhook
    if webhook:
        sent = notify_actionable(webhook, ok, timeout=cfg.http_timeout)
        logging.info("slack notifications sent: %d", sent)

    if ok and not args.no_save:
        day = datetime.now().strftime("%Y-%m-%d")
        save_predictions(cfg.feedback_dir, day, [to_prediction_record(r) for r in ok])
    return ok + [r for r in results if not r.get("ok")]

def cmd_predict(args: argparse.Namespace) -> None:
    _p(run_predict(args, EngineConfig()))

def cmd_fetch(args: argparse.Namespace) -> None:
    cfg = EngineConfig()
    conn = connect(cfg.db_path)
    out: Dict[str, int] = {}
    try:
        ensure_schema(conn, cfg.table)
        for t in _split_tickers(args.ticker):
            out[t] = upsert_candles(conn, t, fetch_candles(t, args.days), table=cfg.table)
    finally:
        conn.close()
    _p({"ok": True, "db": cfg.db_path, "rows": out})

def cmd_backtest(args: argparse.Namespace) -> None:
    cfg = EngineConfig()
    candles = _load_series(args, cfg, args.symbol, args.days or cfg.optimize_history_days)
    if not candles:
        _fail("no_price_data", symbol=args.symbol)
    params = _params_for(args, cfg)
    bt = Backtester(candles, start_index=cfg.signal_start_index, sentiment=cfg.backtest_sentiment)
    metrics = bt.run(params, cfg.initial_capital)
    _p({
        "ok": True,
        "symbol": args.symbol,
        "bars": len(candles),
        "start": candles[0].date,
        "end": candles[-1].date,
        "metrics": metrics.to_dict(),
        "params": params.to_dict(),
    })

def run_optimize(args: argparse.Namespace, cfg: EngineConfig, symbol: str) -> Dict[str, Any]:
    candles = _load_series(args, cfg, symbol, args.days or cfg.optimize_history_days)
    seed = args.seed if args.seed is not None else cfg.seed
    try:
        result = optimize(
            symbol,
            candles,
            n_trials=args.trials if args.trials is not None else cfg.n_trials,
            strategy=RandomSearch(seed=seed),
            strategy_name=cfg.strategy_name,
            min_bars=cfg.min_bars_for_optimization,
            initial_capital=cfg.initial_capital,
            start_index=cfg.signal_start_index,
            sentiment=cfg.backtest_sentiment,
            max_drawdown_limit=cfg.max_drawdown_limit,
            sharpe_weight=cfg.sharpe_weight,
            drawdown_weight=cfg.drawdown_weight,
            max_workers=args.workers or cfg.max_workers,
        )
    except (InsufficientDataError, OptimizationError) as exc:
        logging.error("optimization failed: %s", exc)
        _fail("optimization_failed", symbol=symbol, detail=str(exc))

    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    save_json(Path(cfg.config_dir) / f"optimization_{symbol}_{ts}.json", result.to_dict())
    return result.to_dict()

def _persist_best(cfg: EngineConfig, best: Dict[str, Any], calibration: Optional[Dict[str, float]] = None) -> None:
    # sampled calibration is not backtested; persist the fitted or current pair
    current = load_params(cfg.params_path).params
    body = dict(best["bestParams"])
    body["calibration"] = calibration or current.calibration.to_dict()
    save_params(cfg.params_path, OptimizationParams.from_dict(body))
    logging.info("updated %s", cfg.params_path)

def cmd_optimize(args: argparse.Namespace) -> None:
    cfg = EngineConfig()
    symbol = (args.symbol or cfg.optimize_symbol).upper()
    logging.info("running optimization for %s", symbol)
    out = run_optimize(args, cfg, symbol)
    if not args.no_save:
        _persist_best(cfg, out)
    _p({"ok": True, **out})

def _price_history_for(
    predictions: Sequence[PredictionRecord], loader: CandleLoader
) -> Dict[str, Dict[str, float]]:
    dates = []
    for p in predictions:
        try:
            dates.append(date.fromisoformat(p.date[:10]))
        except ValueError:
            continue
    if not dates:
        return {}
    earliest = min(dates)
    days = (date.today() - earliest).days + 30
    tickers = sorted({p.ticker for p in predictions})
    return build_price_history({t: loader(t, days) for t in tickers})

def run_evaluate(args: argparse.Namespace, cfg: EngineConfig) -> Dict[str, Any]:
    predictions = load_predictions(cfg.feedback_dir)
    if not predictions:
        logging.warning("no saved predictions under %s", cfg.feedback_dir)
    history = _price_history_for(predictions, _make_loader(args, cfg))
    report = match_and_evaluate(predictions, history, days_forward=args.days_forward or cfg.days_forward)
    logging.info(
        "matched %d of %d eligible predictions (%d supplied)",
        report.n_matched,
        report.n_eligible,
        report.n_supplied,
    )
    save_json(Path(cfg.config_dir) / "accuracy_metrics.json", report.metrics.to_dict())

    scores, outcomes = calibration_samples(report.matched)
    calibration = fit_platt_scaling(scores, outcomes)
    logging.info("calibration: slope=%s intercept=%s brier=%s", calibration.slope, calibration.intercept, calibration.brier_score)
    save_json(Path(cfg.config_dir) / "calibration_params.json", calibration.to_dict())
    return {"evaluation": report.to_dict(), "calibration": calibration.to_dict(), "samples": len(scores)}

def cmd_evaluate(args: argparse.Namespace) -> None:
    _p({"ok": True, **run_evaluate(args, EngineConfig())})

def cmd_learn(args: argparse.Namespace) -> None:
    cfg = EngineConfig()
    logging.info("=== learning loop ===")

    logging.info("step 1: predictions")
    if not args.ticker:
        args.ticker = cfg.default_tickers
    predicted = run_predict(args, cfg)

    logging.info("step 2-4: match, evaluate, calibrate")
    evaluated = run_evaluate(args, cfg)

    logging.info("step 5: optimize")
    symbol = (args.symbol or cfg.optimize_symbol).upper()
    optimized = run_optimize(args, cfg, symbol)

    calibration = None
    if evaluated["samples"] > 0:
        cal = evaluated["calibration"]
        calibration = {"slope": cal["slope"], "intercept": cal["intercept"]}
    _persist_best(cfg, optimized, calibration)

    logging.info("=== learning loop complete ===")
    _p({
        "ok": True,
        "predicted": len([r for r in predicted if r.get("ok")]),
        "evaluation": evaluated,
        "optimization": optimized,
    })

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stock-checker", description="Indicator scoring, backtest and self-tuning for daily stock opinions.")
    p.add_argument("--db", dest="use_db", action="store_true", help="Read candles from the SQLite cache instead of the provider")

    sub = p.add_subparsers(dest="cmd", required=True)

    p_pred = sub.add_parser("predict", help="BUY/SELL/HOLD opinion with risk levels for tickers")
    p_pred.add_argument("--ticker", help="Comma-separated tickers, e.g. TSLA,PLTR")
    p_pred.add_argument("--sort", choices=("asc", "desc"), default="asc")
    p_pred.add_argument("--slack-webhook", default=None, help="Slack webhook URL (default: SLACK_WEBHOOK_URL)")
    p_pred.add_argument("--params", default=None, help="Params JSON (default: config dir optimized_weights.json)")
    p_pred.add_argument("--no-save", action="store_true", help="Do not write the feedback file")
    p_pred.set_defaults(func=cmd_predict)

    p_fetch = sub.add_parser("fetch", help="Download candles into the SQLite cache")
    p_fetch.add_argument("--ticker", required=True)
    p_fetch.add_argument("--days", type=int, default=730)
    p_fetch.set_defaults(func=cmd_fetch)

    p_bt = sub.add_parser("backtest", help="Backtest the current params on one symbol")
    p_bt.add_argument("--symbol", required=True)
    p_bt.add_argument("--days", type=int, default=None)
    p_bt.add_argument("--csv", default=None, help="OHLCV CSV instead of the provider")
    p_bt.add_argument("--params", default=None)
    p_bt.set_defaults(func=cmd_backtest)

    p_opt = sub.add_parser("optimize", help="Random search over scoring params")
    p_opt.add_argument("--symbol", default=None)
    p_opt.add_argument("--trials", type=int, default=None)
    p_opt.add_argument("--seed", type=int, default=None)
    p_opt.add_argument("--workers", type=int, default=None)
    p_opt.add_argument("--days", type=int, default=None)
    p_opt.add_argument("--csv", default=None)
    p_opt.add_argument("--no-save", action="store_true", help="Do not update optimized_weights.json")
    p_opt.set_defaults(func=cmd_optimize)

    p_ev = sub.add_parser("evaluate", help="Score saved predictions and refit calibration")
    p_ev.add_argument("--days-forward", type=int, default=None)
    p_ev.set_defaults(func=cmd_evaluate)

    p_learn = sub.add_parser("learn", help="predict -> evaluate -> calibrate -> optimize -> save")
    p_learn.add_argument("--ticker", default=None)
    p_learn.add_argument("--symbol", default=None, help="Symbol to optimize on")
    p_learn.add_argument("--trials", type=int, default=None)
    p_learn.add_argument("--seed", type=int, default=None)
    p_learn.add_argument("--workers", type=int, default=None)
    p_learn.add_argument("--days", type=int, default=None)
    p_learn.add_argument("--days-forward", type=int, default=None)
    p_learn.set_defaults(func=cmd_learn, sort="asc", slack_webhook=None, params=None, no_save=False, csv=None)

    return p

def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    p = build_parser()
    args = p.parse_args(argv)
    args.func(args)

if __name__ == "__main__":
    main()
