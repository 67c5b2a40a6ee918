from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_opt_int(key: str) -> Optional[int]:
    v = os.getenv(key)
    if v is None or v == "":
        return None
    try:
        return int(v)
    except ValueError:
        return None

def _env_str(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v not in (None, "") else default

@dataclass(frozen=True)
class EngineConfig:
    """Runtime settings for the CLI edge.

    Core functions never read this object; the CLI unpacks the values it
    needs and passes them explicitly.
    """

    # Storage
    config_dir: str = _env_str("SC_CONFIG_DIR", "data/config")
    feedback_dir: str = _env_str("SC_FEEDBACK_DIR", "data/feedback")
    db_path: str = _env_str("SC_DB_PATH", "data/market_data.db")
    table: str = _env_str("SC_DB_TABLE", "daily_price")

    # History windows (calendar days requested from the provider)
    history_days: int = _env_int("SC_HISTORY_DAYS", 365)
    optimize_history_days: int = _env_int("SC_OPTIMIZE_HISTORY_DAYS", 730)

    # Optimizer
    strategy_name: str = _env_str("SC_STRATEGY_NAME", "stock_checker_score")
    n_trials: int = _env_int("SC_N_TRIALS", 50)
    min_bars_for_optimization: int = _env_int("SC_MIN_BARS_FOR_OPTIMIZATION", 200)
    max_drawdown_limit: float = _env_float("SC_MAX_DRAWDOWN_LIMIT", 30.0)
    sharpe_weight: float = _env_float("SC_SHARPE_WEIGHT", 0.7)
    drawdown_weight: float = _env_float("SC_DRAWDOWN_WEIGHT", 0.3)
    max_workers: int = _env_int("SC_MAX_WORKERS", 1)
    seed: Optional[int] = _env_opt_int("SC_SEED")

    # Backtest
    signal_start_index: int = _env_int("SC_SIGNAL_START_INDEX", 50)
    initial_capital: float = _env_float("SC_INITIAL_CAPITAL", 10000.0)
    # Historical sentiment is not available; the backtest scores every bar
    # with this neutral value.
    backtest_sentiment: float = _env_float("SC_BACKTEST_SENTIMENT", 50.0)

    # Evaluator
    days_forward: int = _env_int("SC_DAYS_FORWARD", 5)

    # External collaborators
    slack_webhook: str = _env_str("SLACK_WEBHOOK_URL", "")
    fear_greed_url: str = _env_str("SC_FEAR_GREED_URL", "https://api.alternative.me/fng/?limit=1&format=json")
    http_timeout: float = _env_float("SC_HTTP_TIMEOUT", 30.0)

    # Tickers used by the learn loop when none are given
    default_tickers: str = _env_str("SC_DEFAULT_TICKERS", "TSLA,PLTR,AAPL,MSFT,GOOGL,NVDA,AMD,INTC")
    optimize_symbol: str = _env_str("SC_OPTIMIZE_SYMBOL", "TSLA")

    @property
    def params_path(self) -> str:
        return os.path.join(self.config_dir, "optimized_weights.json")
