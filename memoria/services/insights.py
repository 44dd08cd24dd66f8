"""
Rule cascade turning a window of mood entries into plain-language
observations.

generate_insights() is pure: it reads the entries (newest first, the
repository's page order) and never touches the store. load_insights() is
the convenience path that fetches the window first.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from memoria.config import settings
from memoria.db import Store
from memoria.enums import ActivityCategory, Emotion
from memoria.schemas import MoodEntry, MoodStats
from memoria.services.moods import get_page, get_stats

log = logging.getLogger("memoria.insights")

EMPTY_MESSAGE = "Start logging your mood to see insights here."

# sample-size gates
MIN_GROUP = 3
MIN_CONTEXT_ENTRIES = 5
TREND_WINDOW = 5
MIN_ACTIVITY_ENTRIES = 10
MIN_VOLATILITY_ENTRIES = 10
MIN_WEEKDAY_ENTRIES = 14
MIN_WEEKDAYS = 3
MIN_COMBINED_ENTRIES = 30
MIN_COMBINED_PAIRS = 5

# mean-difference cutoffs
TREND_DELTA = 0.5
LOCATION_CAUTION_DELTA = 0.8
ACTIVITY_DELTA = 0.5
WEEKDAY_DELTA = 0.7
COMBINED_DELTA = 0.8

WINDOW_LIMITS = {"day": 24, "week": 50, "month": 100, "year": 365, "all": 1000}
DEFAULT_WINDOW = 50

# Sunday first, matching the calendar view
_WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def window_limit(time_range: Optional[str]) -> int:
    return WINDOW_LIMITS.get((time_range or "").strip().lower(), DEFAULT_WINDOW)


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def _resolve_tz(tz) -> Optional[tzinfo]:
    if isinstance(tz, tzinfo):
        return tz
    name = (tz if tz is not None else settings.insights_tz) or ""
    if not name:
        return None  # local time
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("unknown time zone %r, falling back to local time", name)
        return None


def _group_means(entries: Sequence[MoodEntry], key) -> List[Tuple[str, float]]:
    """(label, mean) for groups with enough samples, best first; ties keep first-seen order."""
    groups: Dict[str, List[int]] = {}
    for e in entries:
        groups.setdefault(key(e), []).append(e.rating)
    means = [(label, _mean(r)) for label, r in groups.items() if len(r) >= MIN_GROUP]
    return sorted(means, key=lambda item: item[1], reverse=True)


# -------------------- rules --------------------


def _dominant_emotion(entries: Sequence[MoodEntry]) -> Optional[str]:
    counts: Dict[str, int] = {}
    for e in entries:
        counts[e.emotion] = counts.get(e.emotion, 0) + 1
    if not counts:
        return None
    # max() returns the first maximal item, i.e. first encountered
    emotion = max(counts, key=counts.get)
    return f"Your most frequent emotion is {Emotion.label_for(emotion)}."


def _trend(entries: Sequence[MoodEntry]) -> Optional[str]:
    if len(entries) <= TREND_WINDOW:
        return None
    newest = _mean(e.rating for e in entries[:TREND_WINDOW])
    oldest = _mean(e.rating for e in entries[-TREND_WINDOW:])
    diff = newest - oldest
    if abs(diff) >= TREND_DELTA:
        return f"Your mood appears to be {'improving' if diff > 0 else 'declining'} recently."
    return "Your mood has been relatively stable recently."


def _volatility(entries: Sequence[MoodEntry]) -> Optional[str]:
    if len(entries) <= MIN_VOLATILITY_ENTRIES:
        return None
    change = _mean(abs(entries[i].rating - entries[i - 1].rating) for i in range(1, len(entries)))
    if change > 1.5:
        return "You seem to be experiencing significant mood swings."
    if change > 1.0:
        return "Your mood has moderate variability throughout the day."
    return "Your mood is relatively consistent throughout the day."


def _location(entries: Sequence[MoodEntry]) -> List[str]:
    located = [e for e in entries if e.location]
    if len(located) < MIN_CONTEXT_ENTRIES:
        return []
    means = _group_means(located, lambda e: e.location)
    if not means:
        return []
    best, best_avg = means[0]
    out = [f"Your mood tends to be better when you're at {best} (avg: {best_avg:.1f})."]
    if len(means) > 1:
        worst, worst_avg = means[-1]
        if best_avg - worst_avg >= LOCATION_CAUTION_DELTA:
            out.append(f"You might want to be mindful of your mood when at {worst} (avg: {worst_avg:.1f}).")
    return out


def _social(entries: Sequence[MoodEntry]) -> Optional[str]:
    social = [e for e in entries if e.social_context]
    if len(social) < MIN_CONTEXT_ENTRIES:
        return None
    means = _group_means(social, lambda e: e.social_context)
    if not means:
        return None
    context, avg = means[0]
    return f"Your mood tends to be better when you're {context.lower()} (avg: {avg:.1f})."


def _weather(entries: Sequence[MoodEntry]) -> Optional[str]:
    rows = [e for e in entries if e.weather]
    if len(rows) < MIN_CONTEXT_ENTRIES:
        return None
    means = _group_means(rows, lambda e: e.weather)
    if not means:
        return None
    weather, avg = means[0]
    return f"Your mood tends to be better during {weather.lower()} weather (avg: {avg:.1f})."


def _activity(entries: Sequence[MoodEntry]) -> Optional[str]:
    active = [e for e in entries if e.activities]
    if len(active) < MIN_ACTIVITY_ENTRIES:
        return None

    best: Optional[Tuple[ActivityCategory, float]] = None
    for category in ActivityCategory:
        with_it = [e.rating for e in active if category in e.activities]
        if len(with_it) < MIN_GROUP:
            continue
        without = [e.rating for e in active if category not in e.activities]
        diff = _mean(with_it) - (_mean(without) if without else 0)
        if diff > ACTIVITY_DELTA and (best is None or diff > best[1]):
            best = (category, diff)

    if best is None:
        return None
    return f"Your mood tends to be better when you engage in {best[0].label}."


def _weekday(entries: Sequence[MoodEntry], tz: Optional[tzinfo]) -> Optional[str]:
    if len(entries) < MIN_WEEKDAY_ENTRIES:
        return None
    ratings: Dict[int, List[int]] = {}
    for e in entries:
        if e.entry_time is None:
            continue
        moment = datetime.fromtimestamp(e.entry_time / 1000, tz=tz or timezone.utc)
        if tz is None:
            moment = moment.astimezone()
        # isoweekday: Monday=1 .. Sunday=7 -> Sunday=0
        ratings.setdefault(moment.isoweekday() % 7, []).append(e.rating)

    days = [(day, _mean(ratings[day])) for day in sorted(ratings)]
    if len(days) <= MIN_WEEKDAYS:
        return None
    best = max(days, key=lambda d: d[1])
    worst = min(days, key=lambda d: d[1])
    if best[1] - worst[1] > WEEKDAY_DELTA:
        return f"Your mood tends to be better on {_WEEKDAYS[best[0]]} and worse on {_WEEKDAYS[worst[0]]}."
    return None


def _combined(entries: Sequence[MoodEntry], overall: float) -> Optional[str]:
    if len(entries) < MIN_COMBINED_ENTRIES:
        return None
    both = [e for e in entries if e.social_context and e.activities]
    if len(both) < MIN_COMBINED_PAIRS:
        return None

    pairs: Dict[str, List[int]] = {}
    for e in both:
        for category in e.activities:
            pairs.setdefault(f"{e.social_context} + {category.label}", []).append(e.rating)

    means = [(text, _mean(r)) for text, r in pairs.items() if len(r) >= MIN_GROUP]
    if not means:
        return None
    text, avg = max(means, key=lambda m: m[1])
    if avg > overall + COMBINED_DELTA:
        return f"Your best mood combination appears to be {text} (avg: {avg:.1f})."
    return None


# -------------------- entry points --------------------


def generate_insights(
    entries: Sequence[MoodEntry],
    stats: Optional[MoodStats] = None,
    *,
    tz=None,
    include_volatility: bool = False,
) -> List[str]:
    """
    Run the rule cascade over `entries` (newest first). Each rule adds at
    most one line (location may add a caution line) and is skipped when its
    sample-size gate is not met. `stats` is accepted for callers that
    already hold it; no rule depends on it.
    """
    if not entries:
        return [EMPTY_MESSAGE]

    entries = list(entries)
    overall = _mean(e.rating for e in entries)
    insights = [f"Your average mood is {overall:.1f} out of 5."]

    for line in (_dominant_emotion(entries), _trend(entries)):
        if line:
            insights.append(line)
    if include_volatility:
        line = _volatility(entries)
        if line:
            insights.append(line)

    insights.extend(_location(entries))
    for line in (
        _social(entries),
        _weather(entries),
        _activity(entries),
        _weekday(entries, _resolve_tz(tz)),
        _combined(entries, overall),
    ):
        if line:
            insights.append(line)

    if stats is not None:
        log.debug("insights over %s of %s entries -> %s lines", len(entries), stats.entry_count, len(insights))
    return insights


async def load_insights(
    store: Store,
    time_range: Optional[str] = None,
    *,
    include_volatility: bool = False,
) -> List[str]:
    entries = await get_page(store, window_limit(time_range), 0)
    stats = await get_stats(store)
    return generate_insights(entries, stats, include_volatility=include_volatility)
