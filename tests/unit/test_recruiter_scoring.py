"""Unit tests for auto-recruiter candidate scoring."""

from __future__ import annotations

import uuid
from typing import Any

from teamescrow.database.models.user import AccountStatus, Availability, UserType
from teamescrow.engine.recruiter import rank_candidates, score_candidate
from teamescrow.integrations.directory import UserProfile


def _profile(**overrides: Any) -> UserProfile:
    values: dict[str, Any] = {
        "user_id": uuid.uuid4(),
        "display_name": "Dev",
        "user_type": UserType.freelancer,
        "account_status": AccountStatus.active,
        "skills": [],
        "rating": 0.0,
        "completed_projects": 0,
        "availability": Availability.offline,
    }
    values.update(overrides)
    return UserProfile(**values)


class TestScoreCandidate:
    """Test the candidate scoring formula."""

    def test_full_score(self) -> None:
        """Test every component of the score together."""
        profile = _profile(
            skills=["Python", "FastAPI", "Go"],
            rating=4.8,
            completed_projects=3,
            availability=Availability.online,
        )

        scored = score_candidate(profile, {"python", "fastapi", "react"})

        # 2 skills * 100 + 80 rating + 3 * 10 + 30 online
        assert scored.score == 340
        assert scored.matched_skills == ["fastapi", "python"]

    def test_rating_bands(self) -> None:
        """Test the rating bonus thresholds."""
        wanted = {"python"}
        assert score_candidate(_profile(skills=["python"], rating=4.5), wanted).score == 180
        assert score_candidate(_profile(skills=["python"], rating=4.49), wanted).score == 140
        assert score_candidate(_profile(skills=["python"], rating=4.0), wanted).score == 140
        assert score_candidate(_profile(skills=["python"], rating=3.99), wanted).score == 100

    def test_skills_compare_case_insensitively(self) -> None:
        """Test that stored skill casing does not matter."""
        scored = score_candidate(_profile(skills=[" PyThOn "]), {"python"})
        assert scored.matched_skills == ["python"]

    def test_busy_is_not_online(self) -> None:
        """Test that only online candidates receive the availability bonus."""
        scored = score_candidate(
            _profile(skills=["python"], availability=Availability.busy), {"python"}
        )
        assert scored.score == 100


class TestRankCandidates:
    """Test candidate ranking."""

    def test_no_matching_skill_is_never_ranked(self) -> None:
        """Test that a high-rated candidate without a matching skill is dropped."""
        star = _profile(
            skills=["Photoshop"],
            rating=5.0,
            completed_projects=40,
            availability=Availability.online,
        )
        novice = _profile(skills=["Python"])

        ranked = rank_candidates([star, novice], {"python"})

        assert [r.user_id for r in ranked] == [novice.user_id]

    def test_best_first(self) -> None:
        """Test that candidates are ordered by descending score."""
        low = _profile(skills=["python"])
        high = _profile(skills=["python", "django"], rating=4.6)
        mid = _profile(skills=["python"], completed_projects=5)

        ranked = rank_candidates([low, high, mid], {"python", "django"})

        assert [r.user_id for r in ranked] == [high.user_id, mid.user_id, low.user_id]
        assert [r.score for r in ranked] == [280, 150, 100]

    def test_ties_keep_directory_order(self) -> None:
        """Test that equal scores keep the order candidates were listed in."""
        first = _profile(skills=["python"])
        second = _profile(skills=["python"])

        ranked = rank_candidates([first, second], {"python"})

        assert [r.user_id for r in ranked] == [first.user_id, second.user_id]

    def test_empty_pool(self) -> None:
        assert rank_candidates([], {"python"}) == []
