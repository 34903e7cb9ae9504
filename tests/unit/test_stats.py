import pytest
from datetime import datetime, timezone

from core.models import CommitInfo
from services.stats import (
    account_age_years,
    analyze_commit_patterns,
    calculate_account_age,
    compute_roast_stats,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestAccountAge:
    @pytest.mark.parametrize(
        "created_at,expected",
        [
            ("2011-01-25T18:44:36Z", "13 years"),
            ("2023-05-01T00:00:00Z", "1 year"),
            ("2024-03-01T00:00:00Z", "3 months"),
            ("2024-05-31T00:00:00Z", "1 day"),
            (None, "unknown"),
            ("not a date", "unknown"),
        ],
    )
    def test_calculate_account_age(self, created_at, expected):
        assert calculate_account_age(created_at, NOW) == expected

    def test_account_age_years(self):
        assert account_age_years("2011-01-25T18:44:36Z", NOW) == 13
        assert account_age_years(None, NOW) == 0


class TestRoastStats:
    def test_compute(self, sample_aggregate):
        stats = compute_roast_stats(sample_aggregate, NOW)

        assert stats.total_repos == 3
        assert stats.total_stars == 14500
        assert stats.empty_repos == 1
        assert stats.top_language == "HTML"
        assert stats.account_age == 13
        assert stats.model_dump(by_alias=True)["totalRepos"] == 3

    def test_unknown_top_language(self, sample_aggregate):
        aggregate = sample_aggregate.model_copy(update={"language_stats": {}})
        assert compute_roast_stats(aggregate, NOW).top_language == "Unknown"


class TestCommitPatterns:
    def test_empty(self):
        patterns = analyze_commit_patterns([])
        assert patterns["totalCommits"] == 0
        assert patterns["mostCommonWords"] == []

    def test_generic_messages(self):
        commits = [
            CommitInfo(message="fix"),
            CommitInfo(message="Update"),
            CommitInfo(message="wip"),
            CommitInfo(message="Refactor the parser module \U0001F680"),
        ]

        patterns = analyze_commit_patterns(commits)

        assert patterns["totalCommits"] == 4
        assert patterns["genericMessages"] == 3
        assert patterns["genericPercentage"] == 75
        assert patterns["hasEmojis"] is True
        assert patterns["emojiCount"] == 1
        assert "parser" in patterns["mostCommonWords"]
