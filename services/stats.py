"""Headline statistics and commit-message analysis for a gathered user."""

import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from core.models import CommitInfo, RoastStats, UserAggregate

GENERIC_COMMIT = re.compile(
    r"^(fix|update|change|add|remove|refactor|merge|initial commit)$", re.IGNORECASE
)
EMOJI = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF\u2600-\u26FF\u2700-\u27BF]"
)
STOP_WORDS = frozenset({"this", "that", "with", "from", "have", "been", "were"})


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def account_age_years(created_at: Optional[str], now: Optional[datetime] = None) -> int:
    """Whole years since `created_at`; 0 when unknown"""
    created = _parse_timestamp(created_at)
    if created is None:
        return 0
    now = now or datetime.now(timezone.utc)
    return max(0, int((now - created).days // 365))


def calculate_account_age(created_at: Optional[str], now: Optional[datetime] = None) -> str:
    """Human readable account age such as "3 years" or "5 months" """
    created = _parse_timestamp(created_at)
    if created is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    days = abs((now - created).days)

    years = days // 365
    if years >= 1:
        return f"{years} year{'s' if years > 1 else ''}"
    months = days // 30
    if months >= 1:
        return f"{months} month{'s' if months > 1 else ''}"
    return f"{days} day{'s' if days != 1 else ''}"


def compute_roast_stats(
    aggregate: UserAggregate, now: Optional[datetime] = None
) -> RoastStats:
    repositories = aggregate.repositories
    top_language = max(
        aggregate.language_stats.items(), key=lambda kv: kv[1], default=("Unknown", 0)
    )[0]
    return RoastStats(
        total_repos=len(repositories),
        total_stars=sum(repo.stars for repo in repositories),
        total_commits=aggregate.total_commits,
        top_language=top_language,
        account_age=account_age_years(aggregate.profile.created_at, now),
        empty_repos=sum(1 for repo in repositories if repo.size == 0),
    )


def analyze_commit_patterns(commits: Iterable[CommitInfo]) -> Dict[str, Any]:
    """Roast material: how generic, how long and how emoji-laden the messages are"""
    messages = [commit.message or "" for commit in commits]
    if not messages:
        return {
            "totalCommits": 0,
            "genericMessages": 0,
            "genericPercentage": 0,
            "averageMessageLength": 0,
            "hasEmojis": False,
            "emojiCount": 0,
            "mostCommonWords": [],
        }

    generic = sum(
        1 for m in messages if GENERIC_COMMIT.match(m.strip()) or len(m.strip()) < 5
    )
    emojis = [e for m in messages for e in EMOJI.findall(m)]

    words: List[str] = [
        word
        for word in re.sub(r"[^\w\s]", "", " ".join(messages).lower()).split()
        if len(word) > 3 and word not in STOP_WORDS
    ]
    common = [word for word, _ in Counter(words).most_common(5)]

    return {
        "totalCommits": len(messages),
        "genericMessages": generic,
        "genericPercentage": round(generic / len(messages) * 100),
        "averageMessageLength": round(sum(len(m) for m in messages) / len(messages)),
        "hasEmojis": bool(emojis),
        "emojiCount": len(emojis),
        "mostCommonWords": common,
    }
