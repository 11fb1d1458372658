"""Group late loggers by missing-day count and render the medal table."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Dict, List

from .models import LeaderboardEntry, LeaderboardGroup, UserAttendance

MEDALS = {
    1: ":first_place_medal:",
    2: ":second_place_medal:",
    3: ":third_place_medal:",
}
DEFAULT_ICON = ":clap:"


def medal_for(rank: int) -> str:
    return MEDALS.get(rank, DEFAULT_ICON)


def default_mention(identity: str) -> str:
    return f"<{identity}>"


def leaderboard_entries(attendances: Iterable[UserAttendance]) -> List[LeaderboardEntry]:
    return [
        LeaderboardEntry(identity=attendance.identity.email, missing_count=attendance.missing_count)
        for attendance in attendances
    ]


def build_leaderboard(
    entries: Iterable[LeaderboardEntry],
    min_qualifying: int = 1,
) -> List[LeaderboardGroup]:
    """Rank distinct missing-day counts descending; ties share a rank.

    Members keep their insertion order but the order inside a group carries no
    meaning.
    """

    grouped: Dict[int, List[str]] = {}
    for entry in entries:
        if entry.missing_count < min_qualifying:
            continue
        grouped.setdefault(entry.missing_count, []).append(entry.identity)

    return [
        LeaderboardGroup(rank=rank, missing_count=count, members=grouped[count])
        for rank, count in enumerate(sorted(grouped, reverse=True), start=1)
    ]


def render_leaderboard(
    groups: Iterable[LeaderboardGroup],
    mention: Callable[[str], str] = default_mention,
) -> str:
    lines = []
    for group in groups:
        people = ", ".join(mention(member) for member in group.members)
        lines.append(
            f"{group.rank} PLACE ({group.missing_count} not logged days) {medal_for(group.rank)}\n {people}"
        )
    return "\n\n".join(lines)


__all__ = [
    "MEDALS",
    "DEFAULT_ICON",
    "medal_for",
    "default_mention",
    "leaderboard_entries",
    "build_leaderboard",
    "render_leaderboard",
]
