"""Trading performance summary injected into the assistant's prompt."""

from __future__ import annotations

from dataclasses import dataclass, field

RECENT_SESSIONS = 3
RECENT_TRADES = 5


class InvalidTradeError(ValueError):
    """Raised when a trade's numbers can't produce a meaningful metric."""


def roi_percent(profit_loss: float, margin: float) -> float:
    """Return on margin, in percent. Margin must be positive."""
    if margin is None or margin <= 0:
        raise InvalidTradeError(f"margin must be positive, got {margin!r}")
    return profit_loss / margin * 100


@dataclass
class TradingSummary:
    total_sessions: int = 0
    total_trades: int = 0
    total_profit: float = 0.0
    winning_trades: int = 0
    losing_trades: int = 0
    recent_sessions: list[dict] = field(default_factory=list)
    recent_trades: list[dict] = field(default_factory=list)

    @property
    def win_rate(self) -> float:
        if not self.total_trades:
            return 0.0
        return self.winning_trades / self.total_trades * 100

    @classmethod
    def from_rows(cls, sessions: list[dict], trades: list[dict]) -> TradingSummary:
        """Build a summary from store rows already ordered newest first."""
        pnl = [float(t.get("profit_loss") or 0) for t in trades]
        return cls(
            total_sessions=len(sessions),
            total_trades=len(trades),
            total_profit=sum(pnl),
            winning_trades=sum(1 for p in pnl if p > 0),
            losing_trades=sum(1 for p in pnl if p < 0),
            recent_sessions=sessions[:RECENT_SESSIONS],
            recent_trades=trades[:RECENT_TRADES],
        )

    def to_prompt(self) -> str:
        lines = [
            f"- Total Sessions: {self.total_sessions}",
            f"- Total Trades: {self.total_trades}",
            f"- Total P/L: ${self.total_profit:,.2f}",
            f"- Win Rate: {self.win_rate:.1f}%",
            f"- Winning Trades: {self.winning_trades}",
            f"- Losing Trades: {self.losing_trades}",
        ]

        if self.recent_sessions:
            lines.append("")
            lines.append("Recent Sessions:")
            for s in self.recent_sessions:
                lines.append(
                    f"- {s.get('name', 'Unnamed')}: capital "
                    f"${float(s.get('initial_capital') or 0):,.2f} -> "
                    f"${float(s.get('current_capital') or 0):,.2f}"
                )

        if self.recent_trades:
            lines.append("")
            lines.append("Recent Trades:")
            for t in self.recent_trades:
                lines.append(_format_trade(t))

        return "\n".join(lines)


def _format_trade(trade: dict) -> str:
    session = (trade.get("trading_sessions") or {}).get("name", "?")
    pnl = float(trade.get("profit_loss") or 0)
    try:
        roi = f"{roi_percent(pnl, float(trade.get('margin') or 0)):.2f}%"
    except InvalidTradeError:
        roi = "n/a"
    line = f"- [{session}] {trade.get('entry_side', '?')} P/L ${pnl:,.2f} (ROI {roi})"
    if trade.get("comments"):
        line += f" — {trade['comments']}"
    return line
