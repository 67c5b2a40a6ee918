import logging
from typing import Any, Dict, Iterable

import requests

from .models import BUY, SELL

def _fmt(value: Any) -> str:
    if value is None:
        return "N/A"
    try:
        return f"{float(value):.2f}"
    except (TypeError, ValueError):
        return str(value)

def format_slack_message(result: Dict[str, Any]) -> str:
    ind = result["indicators"]
    risk = result["risk"]
    probs = result.get("probabilities") or {}
    patterns = result.get("patterns") or []
    lines = [
        f"- Close: {_fmt(result['close'])}",
        f"- Volume: {int(result.get('volume') or 0)}",
        f"- RSI: {_fmt(ind['rsi'])}",
        f"- StochK: {_fmt(ind['stochastic_k'])}",
        f"- Bollinger Bands: {_fmt(ind['bb_lower'])} - {_fmt(ind['bb_upper'])}",
        f"- Donchian Channels: {_fmt(ind['donch_lower'])} - {_fmt(ind['donch_upper'])}",
        f"- Williams %R: {_fmt(ind['williams_r'])}",
        f"- Fear & Greed: {result.get('fear_greed') if result.get('fear_greed') is not None else 'N/A'}",
        f"- Patterns: {', '.join(patterns) if patterns else 'None'}",
        f"- Score: {_fmt(result['score'])}",
        f"- Confidence: {probs.get('confidence', 'N/A')} "
        f"(buy {_fmt(probs.get('buy_probability'))}% / sell {_fmt(probs.get('sell_probability'))}%)",
        f"- ATR: {_fmt(ind['atr'])}",
        f"- Stop Loss: {_fmt(risk['stop_loss'])}",
        f"- Take Profit: {_fmt(risk['take_profit'])}",
        f"- Trailing Stop: {_fmt(risk['trailing_stop'])}",
        f"- Trailing Start: {_fmt(risk['trailing_start'])}",
    ]
    return f"{result['date']} {result['ticker']} {result['opinion']}\n" + "\n".join(lines)

def send_slack_notification(webhook: str, result: Dict[str, Any], timeout: float = 5) -> bool:
    if not webhook:
        return False
    try:
        resp = requests.post(webhook, json={"text": format_slack_message(result)}, timeout=timeout)
        if not resp.ok:
            logging.warning("slack send failed: %s %s", resp.status_code, resp.text)
            return False
        return True
    except requests.RequestException as e:
        logging.warning("slack send error: %s", e)
        return False

def notify_actionable(webhook: str, results: Iterable[Dict[str, Any]], timeout: float = 5) -> int:
    """Post every BUY/SELL result; returns how many posts succeeded."""
    sent = 0
    for r in results:
        if r.get("ok") and r.get("opinion") in (BUY, SELL):
            if send_slack_notification(webhook, r, timeout=timeout):
                sent += 1
    return sent
