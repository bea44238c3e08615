"""Performance metrics over a snapshot of bet records.

This module provides pure functions that turn a list of bets (dicts as
returned by ``db.fetch_bets``) into the numbers shown on the dashboard:
equity curve, period summaries, breakdowns and heuristic insights.
Nothing here touches the database and inputs are never mutated. Missing
stakes and unsettled result amounts count as zero.
"""

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Union

import pandas as pd

from .config import (
    LOSING_STREAK_ALERT,
    MAX_INSIGHTS,
    NEGATIVE_ROI_THRESHOLD,
    PENDING_ALERT_COUNT,
    PERIOD_SUMMARY_LIMIT,
    STRONG_ROI_THRESHOLD,
)
from .models import (
    LOSING_STATUSES,
    BetStatus,
    BreakdownDimension,
    InsightTone,
    PeriodGrouping,
    status_of,
)
from .type_safety import safe_float

UNASSIGNED_KEY = "unassigned"
UNASSIGNED_LABEL = "Unassigned"


def _stake(bet: dict) -> float:
    return safe_float(bet.get("stake"))


def _profit(bet: dict) -> float:
    return safe_float(bet.get("result_amount"))


def calculate_roi(profit: float, stake: float) -> float:
    """Return profit / stake as a percentage, or 0 when nothing was staked.

    Examples:
        >>> calculate_roi(5.0, 50.0)
        10.0
        >>> calculate_roi(5.0, 0.0)
        0.0
    """
    if stake == 0:
        return 0.0
    return profit / stake * 100


def _parse_placed_at(value: Any) -> Optional[datetime]:
    """Parse placed_at to a naive UTC datetime, or None if it is unusable."""
    if value is None or value == "":
        return None
    try:
        timestamp = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(timestamp):
        return None
    return timestamp.tz_convert(None).to_pydatetime()


def sort_chronologically(bets: Iterable[dict]) -> list[dict]:
    """Return bets ordered by placed_at, oldest first.

    The sort is stable, so bets placed at the same instant keep their input
    order. Bets without a usable placed_at sort first.
    """
    return sorted(
        bets,
        key=lambda bet: _parse_placed_at(bet.get("placed_at")) or datetime.min,
    )


def calculate_equity_curve(bets: list[dict]) -> list[dict]:
    """Build the running profit and ROI after each bet, in chronological order.

    Args:
        bets: Bet dicts with placed_at, stake and result_amount

    Returns:
        One point per bet: {"date": placed_at, "profit": running profit,
        "roi": running profit / running stake * 100 (0 while stake is 0)}

    Examples:
        >>> curve = calculate_equity_curve([
        ...     {"placed_at": "2024-01-02T00:00:00Z", "stake": 10, "result_amount": -10},
        ...     {"placed_at": "2024-01-01T00:00:00Z", "stake": 10, "result_amount": 9},
        ... ])
        >>> [point["profit"] for point in curve]
        [9.0, -1.0]
        >>> curve[-1]["roi"]
        -5.0
    """
    running_profit = 0.0
    running_stake = 0.0
    curve = []

    for bet in sort_chronologically(bets):
        running_profit += _profit(bet)
        running_stake += _stake(bet)
        curve.append({
            "date": bet.get("placed_at"),
            "profit": running_profit,
            "roi": calculate_roi(running_profit, running_stake),
        })

    return curve


def get_period_bucket(moment: datetime, grouping: Union[PeriodGrouping, str]) -> dict:
    """Return the bucket a timestamp falls into.

    Weeks start on Monday; months and quarters are calendar periods.

    Returns:
        Dict with key (stable id), label (display text) and start (datetime)

    Examples:
        >>> get_period_bucket(datetime(2024, 1, 3, 15), "week")["label"]
        '01 Jan - 07 Jan'
        >>> get_period_bucket(datetime(2024, 5, 20), "quarter")["label"]
        'Q2 2024'
    """
    grouping = PeriodGrouping(grouping)
    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)

    if grouping == PeriodGrouping.WEEK:
        start = day - timedelta(days=day.weekday())
        end = start + timedelta(days=6)
        return {
            "key": f"w-{start.isoformat()}",
            "start": start,
            "label": f"{start.strftime('%d %b')} - {end.strftime('%d %b')}",
        }

    if grouping == PeriodGrouping.MONTH:
        start = day.replace(day=1)
        return {
            "key": f"m-{start.isoformat()}",
            "start": start,
            "label": start.strftime("%B %Y"),
        }

    quarter_month = 3 * ((day.month - 1) // 3) + 1
    start = day.replace(month=quarter_month, day=1)
    quarter_number = (quarter_month - 1) // 3 + 1
    return {
        "key": f"q-{start.isoformat()}",
        "start": start,
        "label": f"Q{quarter_number} {start.year}",
    }


def summarize_by_period(
    bets: list[dict],
    grouping: Union[PeriodGrouping, str] = PeriodGrouping.MONTH,
) -> list[dict]:
    """Summarize bets per week, month or quarter of placement.

    Args:
        bets: Bet dicts
        grouping: 'week', 'month' or 'quarter'

    Returns:
        Up to 5 most recent buckets, newest first, each
        {"key", "label", "start", "count", "profit", "roi"}

    Raises:
        ValueError: If grouping is not a known period
    """
    grouping = PeriodGrouping(grouping)
    buckets: dict[str, dict] = {}

    for bet in bets:
        placed_at = _parse_placed_at(bet.get("placed_at"))
        if placed_at is None:
            continue

        info = get_period_bucket(placed_at, grouping)
        bucket = buckets.get(info["key"])
        if bucket is None:
            bucket = {**info, "count": 0, "profit": 0.0, "stake": 0.0}
            buckets[info["key"]] = bucket

        bucket["count"] += 1
        bucket["profit"] += _profit(bet)
        bucket["stake"] += _stake(bet)

    newest_first = sorted(buckets.values(), key=lambda bucket: bucket["start"], reverse=True)

    return [
        {
            "key": bucket["key"],
            "label": bucket["label"],
            "start": bucket["start"],
            "count": bucket["count"],
            "profit": bucket["profit"],
            "roi": calculate_roi(bucket["profit"], bucket["stake"]),
        }
        for bucket in newest_first[:PERIOD_SUMMARY_LIMIT]
    ]


def format_breakdown_label(value: str) -> str:
    """Shorten long identifiers for display.

    Examples:
        >>> format_breakdown_label("short")
        'short'
        >>> format_breakdown_label("11111111-1111-1111-1111-111111111111")
        '111111…'
    """
    if len(value) <= 10:
        return value
    return f"{value[:6]}…"


def build_breakdown(
    bets: list[dict],
    dimension: Union[BreakdownDimension, str],
) -> list[dict]:
    """Group bets by bankroll, bookmaker or event.

    Args:
        bets: Bet dicts
        dimension: 'bankroll_id', 'bookmaker_id' or 'event_id'

    Returns:
        One entry per value seen, sorted by profit (highest first):
        {"key", "label", "count", "profit", "stake", "win_rate"} where
        win_rate is the percentage of bets with status 'won'. Bets without a
        value are grouped under the 'unassigned' key.

    Raises:
        ValueError: If dimension is not a supported field
    """
    field = BreakdownDimension(dimension).value
    groups: dict[str, dict] = {}

    for bet in bets:
        raw = bet.get(field)
        key = UNASSIGNED_KEY if raw is None or raw == "" else str(raw)
        entry = groups.get(key)
        if entry is None:
            entry = {
                "key": key,
                "label": UNASSIGNED_LABEL if key == UNASSIGNED_KEY else format_breakdown_label(key),
                "count": 0,
                "profit": 0.0,
                "stake": 0.0,
                "wins": 0,
            }
            groups[key] = entry

        entry["count"] += 1
        entry["profit"] += _profit(bet)
        entry["stake"] += _stake(bet)
        if status_of(bet) == BetStatus.WON:
            entry["wins"] += 1

    breakdown = [
        {
            "key": entry["key"],
            "label": entry["label"],
            "count": entry["count"],
            "profit": entry["profit"],
            "stake": entry["stake"],
            "win_rate": entry["wins"] / entry["count"] * 100 if entry["count"] else 0.0,
        }
        for entry in groups.values()
    ]
    return sorted(breakdown, key=lambda entry: entry["profit"], reverse=True)


def get_longest_losing_streak(bets: list[dict]) -> int:
    """Longest run of losing bets in chronological order.

    lost, void, cashed_out and cancelled extend the run, won resets it, and
    any other status leaves it untouched.

    Examples:
        >>> get_longest_losing_streak([
        ...     {"placed_at": "2024-01-01", "status": "lost"},
        ...     {"placed_at": "2024-01-02", "status": "pending"},
        ...     {"placed_at": "2024-01-03", "status": "void"},
        ...     {"placed_at": "2024-01-04", "status": "won"},
        ...     {"placed_at": "2024-01-05", "status": "lost"},
        ... ])
        2
    """
    current = 0
    longest = 0
    for bet in sort_chronologically(bets):
        status = status_of(bet)
        if status in LOSING_STATUSES:
            current += 1
            longest = max(longest, current)
        elif status == BetStatus.WON:
            current = 0
    return longest


def find_top_tag(bets: list[dict]) -> Optional[dict]:
    """Find the tag with the best ROI among tags with a nonzero total stake.

    A bet counts once for every tag it carries. Ties keep the tag seen first.

    Returns:
        {"tag", "roi"} or None when no tag has any stake
    """
    tag_stats: dict[str, dict] = {}

    for bet in bets:
        for tag in bet.get("tags") or []:
            stats = tag_stats.setdefault(tag, {"profit": 0.0, "stake": 0.0})
            stats["profit"] += _profit(bet)
            stats["stake"] += _stake(bet)

    best = None
    for tag, stats in tag_stats.items():
        if stats["stake"] == 0:
            continue
        roi = calculate_roi(stats["profit"], stats["stake"])
        if best is None or roi > best["roi"]:
            best = {"tag": tag, "roi": roi}

    return best


def _insight(tone: InsightTone, message: str) -> dict:
    return {"tone": tone.value, "message": message}


def generate_insights(bets: list[dict]) -> list[dict]:
    """Produce up to four short observations about the bets.

    Rules, in order: strong or negative overall ROI, many pending bets, a
    long losing streak, and the best performing tag. When none of them
    fires a single neutral message is returned. An empty list short-circuits
    to a prompt to add bets.

    Returns:
        List of {"tone": 'positive' | 'warning' | 'info', "message": str}

    Examples:
        >>> generate_insights([])
        [{'tone': 'info', 'message': 'Add your first bets to generate insights.'}]
    """
    if not bets:
        return [_insight(InsightTone.INFO, "Add your first bets to generate insights.")]

    insights = []
    total_stake = sum(_stake(bet) for bet in bets)
    total_profit = sum(_profit(bet) for bet in bets)
    roi = calculate_roi(total_profit, total_stake)

    if roi >= STRONG_ROI_THRESHOLD:
        insights.append(_insight(
            InsightTone.POSITIVE,
            f"Solid ROI ({roi:.2f}%). Keep the current strategy.",
        ))
    elif roi <= NEGATIVE_ROI_THRESHOLD:
        insights.append(_insight(
            InsightTone.WARNING,
            f"Negative ROI ({roi:.2f}%). Review stakes and markets.",
        ))

    pending_count = sum(1 for bet in bets if status_of(bet) == BetStatus.PENDING)
    if pending_count >= PENDING_ALERT_COUNT:
        insights.append(_insight(
            InsightTone.INFO,
            f"{pending_count} pending bets. Consider closing positions or recording results.",
        ))

    streak = get_longest_losing_streak(bets)
    if streak >= LOSING_STREAK_ALERT:
        insights.append(_insight(
            InsightTone.WARNING,
            f"Losing streak of {streak} bets. Consider taking a break.",
        ))

    top_tag = find_top_tag(bets)
    if top_tag:
        insights.append(_insight(
            InsightTone.POSITIVE,
            f'Tag "{top_tag["tag"]}" leads with ROI {top_tag["roi"]:.1f}%.',
        ))

    if not insights:
        insights.append(_insight(
            InsightTone.INFO,
            "No notable alerts. Keep logging bets to unlock more insights.",
        ))

    return insights[:MAX_INSIGHTS]


def summarize_bets(bets: list[dict]) -> dict:
    """Headline numbers for the dashboard cards.

    Returns:
        Dictionary with keys:
        - total_bets (int)
        - total_staked (float)
        - profit (float): Sum of result amounts
        - roi (float): profit / total_staked as a percentage
        - pending (int): Bets still pending
        - last_update (str | None): Most recent updated_at
    """
    if not bets:
        return {
            "total_bets": 0,
            "total_staked": 0.0,
            "profit": 0.0,
            "roi": 0.0,
            "pending": 0,
            "last_update": None,
        }

    total_staked = sum(_stake(bet) for bet in bets)
    profit = sum(_profit(bet) for bet in bets)
    updates = [bet["updated_at"] for bet in bets if bet.get("updated_at")]

    return {
        "total_bets": len(bets),
        "total_staked": total_staked,
        "profit": profit,
        "roi": calculate_roi(profit, total_staked),
        "pending": sum(1 for bet in bets if status_of(bet) == BetStatus.PENDING),
        "last_update": max(updates) if updates else None,
    }
