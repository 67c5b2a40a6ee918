"""Daily stock opinion engine (BUY / SELL / HOLD) with a self-tuning loop.

Core idea (daily bars, latest-close opinion):
- Score the latest bar with weighted indicator votes (RSI, Stochastic,
  Bollinger, Donchian, Williams %R, MACD, SMA/EMA, fear & greed) plus
  chart-pattern weights on the buy side
- BUY when buy score >= buy threshold, SELL when sell score >= sell threshold
- ATR risk envelope: stop / take-profit / trailing stop around the close
- Platt-scaled scores -> buy/sell/hold probabilities and a confidence tier
- Learning loop: evaluate saved predictions 5-10 days later, refit
  calibration, random-search weights on a long-only backtest under a
  drawdown cap
"""

__all__ = [
    "config",
    "models",
    "params",
    "indicators",
    "patterns",
    "scoring",
    "calibrator",
    "backtester",
    "optimizer",
    "evaluator",
    "data",
    "db",
    "store",
    "recommender",
    "notifier",
]
