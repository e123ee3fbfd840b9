"""Plain-text rendering shared by the Telegram bot and the CLI."""

from decimal import Decimal

from kellybot.engine import Initiation
from kellybot.staking import StakeBreakdown
from kellybot.stats import StatsSummary
from kellybot.storage import BetRecord, BetStatus


def money(amount: Decimal | None) -> str:
    if amount is None:
        return "£-"
    sign = "-" if amount < 0 else ""
    return f"{sign}£{abs(amount):,.2f}"


def format_bankroll(bankroll: Decimal) -> str:
    return f"💰 Current bankroll: {money(bankroll)}"


def format_bet_line(bet: BetRecord) -> str:
    """One-line summary used in lists."""
    commission = f" | Comm: {bet.commission}%" if bet.commission is not None else ""
    line = (
        f"{bet.id} | {bet.bookmaker} | {bet.sport} | Stake: {money(bet.stake)}"
        f" @ {bet.back_odds}{commission}\n    {bet.bet_name}"
    )
    if bet.status.is_settled:
        line += f"\n    {bet.status.value.upper()} P/L: {money(bet.profit_loss)}"
    return line


def format_initiation(initiation: Initiation, ttl_minutes: int | None = None) -> str:
    prepared = initiation.prepared
    lines = [
        "Parsed bet:",
        f"  Bookmaker: {prepared.bookmaker}",
        f"  Sport: {prepared.sport}",
        f"  Name: {prepared.bet_name}",
        f"  Back odds: {prepared.back_odds}",
        f"  Fair odds: {prepared.fair_odds}",
    ]
    if prepared.commission is not None:
        lines.append(f"  Commission: {prepared.commission}%")

    if initiation.recommended_stake <= 0:
        reason = prepared.calculation_error or "Low/negative EV or invalid odds."
        lines.append(f"\nKelly stake £0.00. Reason: {reason}")
        return "\n".join(lines)

    lines.append(f"\nKelly recommends: {money(initiation.recommended_stake)}")
    expiry = f" (expires in {ttl_minutes} min)" if ttl_minutes else ""
    lines.append(
        f"/confirm to place at this stake, /confirm <stake> for another amount, "
        f"/calc for the working, /cancel to drop it{expiry}."
    )
    return "\n".join(lines)


def format_breakdown(breakdown: StakeBreakdown | None, kelly_fraction: Decimal) -> str:
    if breakdown is None:
        return "Invalid input for calculation explanation."
    return (
        "Calculation:\n"
        f"EV = (Back / Fair) - 1 = ({breakdown.back_odds} / {breakdown.fair_odds}) - 1 "
        f"= {breakdown.expected_value:.4f}\n"
        f"Raw Kelly % = EV / (Back - 1) = {breakdown.expected_value:.4f} / "
        f"{breakdown.back_odds - 1} = {breakdown.raw_kelly_pct * 100:.2f}%\n"
        f"Used Kelly % = Raw Kelly * {kelly_fraction} = {breakdown.used_kelly_pct * 100:.2f}%\n"
        f"Cap % = {breakdown.cap_pct * 100:.1f}% of Bankroll ({money(breakdown.cap)})"
        f"{' - applied' if breakdown.capped else ''}\n"
        f"Final Stake = Min(Used Kelly %, Cap %) * {money(breakdown.bankroll)}, "
        f"rounded = {money(breakdown.stake)}"
    )


def format_settled(bet: BetRecord, bankroll: Decimal) -> str:
    commission = f" (Comm: {bet.commission}%)" if bet.commission is not None else ""
    return (
        f"✅ Bet {bet.id} settled: {bet.status.value.upper()}\n"
        f"Bet: {bet.bet_name}\n"
        f"Stake: {money(bet.stake)}\n"
        f"P/L: {money(bet.profit_loss or Decimal('0'))}{commission}\n"
        f"Bankroll: {money(bankroll)}"
    )


def format_unsettled(bet: BetRecord, previous: BetStatus, bankroll: Decimal) -> str:
    return (
        f"↩️ Bet {bet.id} returned to pending (was {previous.value}).\n"
        f"Bankroll: {money(bankroll)}"
    )


def format_pending(bets: list[BetRecord], limit: int | None = None) -> str:
    if not bets:
        return "No pending bets match filters."
    shown = bets[:limit] if limit else bets
    lines = [f"Found {len(bets)} pending bet(s):", ""]
    lines.extend(format_bet_line(bet) for bet in shown)
    if len(shown) < len(bets):
        lines.append(f"... and {len(bets) - len(shown)} more")
    return "\n".join(lines)


def format_stats(summary: StatsSummary, limit: int | None = None) -> str:
    filters = [
        summary.time_range.label if summary.time_range else "All time",
    ]
    if summary.sport:
        filters.append(f"sport={summary.sport}")
    if summary.bookmaker:
        filters.append(f"bookmaker={summary.bookmaker}")

    lines = [
        f"📊 Stats ({', '.join(filters)})",
        f"Total bets: {summary.total_bets} ({summary.pending} pending)",
        f"Settled: {summary.total_settled_bets}",
        f"  Wins: {summary.wins} | Losses: {summary.losses} | "
        f"Pushes: {summary.pushes} | Partial wins: {summary.partial_wins}",
        f"Settled stake: {money(summary.total_stake)}",
        f"P/L: {money(summary.total_profit_loss)}",
        f"ROI: {summary.roi * 100:.2f}%",
        f"Current bankroll: {money(summary.current_bankroll)}",
    ]

    if summary.bets is not None:
        lines.append("")
        if not summary.bets:
            lines.append("No bets match these filters.")
        shown = summary.bets[:limit] if limit else summary.bets
        lines.extend(format_bet_line(bet) for bet in shown)
        if len(shown) < len(summary.bets):
            lines.append(f"... and {len(summary.bets) - len(shown)} more")
    return "\n".join(lines)
