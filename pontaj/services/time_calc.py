from __future__ import annotations

MINUTES_PER_DAY = 24 * 60
DEFAULT_FALLBACK_TIME = "08:00"


def _parse_hhmm(value: object) -> tuple[int, int] | None:
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None

    parts = raw.split(":")
    try:
        hour = int(parts[0])
        minute = int(parts[1]) if len(parts) > 1 and parts[1] != "" else 0
    except ValueError:
        return None

    hour = max(0, min(23, hour))
    minute = max(0, min(59, minute))
    return hour, minute


def normalize_time(raw: object, fallback: str = DEFAULT_FALLBACK_TIME) -> str:
    """Return ``raw`` as a clamped ``HH:MM`` string.

    Hours are clamped to 0..23 and minutes to 0..59. Anything that cannot be
    read as a time of day yields the (normalised) fallback, so the function
    never raises.
    """
    parsed = _parse_hhmm(raw)
    if parsed is None:
        parsed = _parse_hhmm(fallback) or _parse_hhmm(DEFAULT_FALLBACK_TIME)
    hour, minute = parsed  # type: ignore[misc]
    return f"{hour:02d}:{minute:02d}"


def to_minutes(value: str) -> int:
    hour_str, minute_str = normalize_time(value).split(":")
    return int(hour_str) * 60 + int(minute_str)


def work_interval(start: str, end: str) -> tuple[int, int]:
    """Minute offsets from the start of the entry's day.

    A shift whose end is not after its start crosses midnight, so the end is
    pushed into the next day. ``start == end`` is a full 24 hour shift.
    """
    start_minute = to_minutes(start)
    end_minute = to_minutes(end)
    if end_minute <= start_minute:
        end_minute += MINUTES_PER_DAY
    return start_minute, end_minute


def calc_duration_minutes(start: str, end: str) -> int:
    start_minute, end_minute = work_interval(start, end)
    return max(0, end_minute - start_minute)


def calc_duration_hours(start: str, end: str) -> float:
    return round(calc_duration_minutes(start, end) / 60, 2)


def intervals_overlap(first: tuple[int, int], second: tuple[int, int]) -> bool:
    # Half-open: a shift ending at 17:00 does not collide with one starting at 17:00.
    return first[0] < second[1] and second[0] < first[1]
