"""Tests for leaderboard.py: weekly ranking and caching."""

from __future__ import annotations


def _study(student_id, minutes):
    from tracking import end_session, start_session
    start_session(student_id)
    end_session(student_id, minutes)


class TestWeeklyLeaderboard:
    def test_ranked_by_hours(self, student, university):
        from db_stores import StudentStoreDB
        from leaderboard import weekly_leaderboard
        keen = StudentStoreDB.create("Keen", "keen@test.edu", university_id=university)
        _study(student.id, 60)
        _study(keen.id, 150)

        board = weekly_leaderboard(university)
        assert [e["student_id"] for e in board] == [keen.id, student.id]
        assert board[0] == {
            "rank": 1, "student_id": keen.id, "codename": f"Student #{keen.id}", "hours": 2.5,
        }
        assert board[1]["codename"] == "Falcon"

    def test_opted_out_students_hidden(self, student, university):
        from db_stores import StudentStoreDB
        from leaderboard import weekly_leaderboard
        shy = StudentStoreDB.create("Shy", "shy@test.edu", university_id=university,
                                    show_on_leaderboard=False)
        _study(shy.id, 300)
        assert [e["student_id"] for e in weekly_leaderboard(university)] == [student.id]

    def test_other_universities_excluded(self, student, university):
        from db_stores import StudentStoreDB, UniversityStoreDB
        from leaderboard import weekly_leaderboard
        other_uni = UniversityStoreDB.create("Elsewhere")
        StudentStoreDB.create("Far", "far@else.edu", university_id=other_uni)
        assert len(weekly_leaderboard(university)) == 1

    def test_limit(self, student, university):
        from db_stores import StudentStoreDB
        from leaderboard import weekly_leaderboard
        for i in range(4):
            StudentStoreDB.create(f"S{i}", f"s{i}@test.edu", university_id=university)
        assert len(weekly_leaderboard(university, limit=3)) == 3

    def test_cached_until_ttl(self, student, university):
        from cache_backend import get_cache
        from leaderboard import weekly_leaderboard
        first = weekly_leaderboard(university)
        _study(student.id, 120)
        assert weekly_leaderboard(university) == first

        get_cache().clear()
        assert weekly_leaderboard(university)[0]["hours"] == 2.0

    def test_disabled(self, app, student, university):
        from leaderboard import weekly_leaderboard
        app.config["FEATURE_FLAGS"]["leaderboard"] = False
        assert weekly_leaderboard(university) == []
