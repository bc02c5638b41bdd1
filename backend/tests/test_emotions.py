"""
Tests for /api/v1/emotions
==========================
Covers:
- Create: vocabulary and intensity normalisation, stress clamping and 422
  for non-numeric stress, 400s for unknown values, streak advanced,
  streak failure tolerated
- List/search: own entries only for patients, doctor access to patients
  on their list, private entries hidden from everyone but the owner,
  filters, sorting by intensity score, pagination totals
- Intensity help document and instant recommendations
- Per-user views: time range, stats, patterns, analysis,
  recommendations and summary (rule-based analysis)
- Single entry get/update/delete permissions

Run: pytest tests/test_emotions.py -v
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

_SCORES = {"VERY_LOW": 1, "LOW": 2, "MODERATE": 3, "HIGH": 4, "VERY_HIGH": 5}


def _ago(**delta) -> str:
    return (datetime.now(timezone.utc) - timedelta(**delta)).isoformat()


def _seed_entry(db, user: dict, **fields) -> dict:
    intensity = fields.pop("intensity", "MODERATE")
    row = {
        "id": str(uuid.uuid4()),
        "user_id": user["id"],
        "emotion": "calm",
        "intensity": intensity,
        "intensity_score": _SCORES[intensity],
        "stress_level": 4,
        "tags": [],
        "triggers": [],
        "is_private": False,
        "recorded_at": _ago(hours=1),
        **fields,
    }
    db.seed("emotion_entries", row)
    return row


@pytest.fixture
def treating_doctor(db, doctor, patient) -> dict:
    db.tables["doctors"][0]["patients"].append(patient["id"])
    return doctor


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreate:

    def test_normalises_and_advances_streak(self, client, db, patient) -> None:
        response = client.post("/api/v1/emotions", headers=db.login(patient), json={
            "emotion": "тривожний",
            "intensity": "high",
            "stress_level": 14,
            "tags": [" exam ", ""],
            "mood_before": "Calm",
            "description": "Before the statistics exam",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["emotion"] == "anxious"
        assert body["emotion_ukrainian"] == "тривожний"
        assert body["intensity"] == "HIGH"
        assert body["intensity_score"] == 4
        assert body["intensity_description"].startswith("High")
        assert body["stress_level"] == 10
        assert body["tags"] == ["exam"]
        assert body["mood_before"] == "calm"

        stored = db.tables["emotion_entries"][0]
        assert stored["intensity_score"] == 4
        assert stored["user_id"] == patient["id"]

        streak = db.tables["streaks"][0]
        assert streak["current_streak"] == 1
        assert streak["total_mood_tracked"] == 1

    @pytest.mark.parametrize("raw,level", [(2, "LOW"), ("5", "VERY_HIGH"), (3.0, "MODERATE"), ("Very_Low", "VERY_LOW")])
    def test_intensity_forms(self, client, db, patient, raw, level) -> None:
        response = client.post(
            "/api/v1/emotions", headers=db.login(patient),
            json={"emotion": "calm", "intensity": raw},
        )
        assert response.status_code == 201
        assert response.json()["intensity"] == level

    def test_unknown_emotion(self, client, db, patient) -> None:
        response = client.post(
            "/api/v1/emotions", headers=db.login(patient),
            json={"emotion": "bored", "intensity": "LOW"},
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "invalid_emotion_data"
        assert len(detail["valid_emotions"]) == 16
        assert not db.tables.get("emotion_entries")

    @pytest.mark.parametrize("raw", ["extreme", 7, 2.5, "0"])
    def test_invalid_intensity(self, client, db, patient, raw) -> None:
        response = client.post(
            "/api/v1/emotions", headers=db.login(patient),
            json={"emotion": "calm", "intensity": raw},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_intensity"

    @pytest.mark.parametrize("raw", ["abc", True, [1], "nan"])
    def test_unusable_stress_level(self, client, db, patient, raw) -> None:
        response = client.post(
            "/api/v1/emotions", headers=db.login(patient),
            json={"emotion": "calm", "intensity": 3, "stress_level": raw},
        )

        assert response.status_code == 422
        assert not db.tables.get("emotion_entries")

    @pytest.mark.parametrize("raw,stored", [("7", 7), (0, 1), (6.5, 7)])
    def test_numeric_stress_level_clamped(self, client, db, patient, raw, stored) -> None:
        response = client.post(
            "/api/v1/emotions", headers=db.login(patient),
            json={"emotion": "calm", "intensity": 3, "stress_level": raw},
        )

        assert response.status_code == 201
        assert response.json()["stress_level"] == stored

    def test_description_too_long(self, client, db, patient) -> None:
        response = client.post(
            "/api/v1/emotions", headers=db.login(patient),
            json={"emotion": "calm", "intensity": "LOW", "description": "x" * 1001},
        )
        assert response.status_code == 422

    def test_streak_failure_keeps_entry(self, client, db, patient, monkeypatch) -> None:
        def _boom(self, user_id, when=None):
            raise RuntimeError("streaks table unavailable")

        monkeypatch.setattr("app.routers.emotions.StreakService.record_activity", _boom)

        response = client.post(
            "/api/v1/emotions", headers=db.login(patient),
            json={"emotion": "happy", "intensity": "LOW"},
        )

        assert response.status_code == 201
        assert len(db.tables["emotion_entries"]) == 1

    def test_requires_auth(self, client) -> None:
        response = client.post("/api/v1/emotions", json={"emotion": "calm", "intensity": "LOW"})
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# List & search
# ---------------------------------------------------------------------------

class TestList:

    def test_patient_sees_only_own(self, client, db, patient) -> None:
        other = db.add_user()
        _seed_entry(db, patient)
        _seed_entry(db, patient, is_private=True)
        _seed_entry(db, other)

        response = client.get("/api/v1/emotions", headers=db.login(patient))

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 2
        assert {e["user_id"] for e in body["data"]} == {patient["id"]}

    def test_patient_cannot_list_others(self, client, db, patient) -> None:
        other = db.add_user()
        response = client.get(f"/api/v1/emotions?user_id={other['id']}", headers=db.login(patient))
        assert response.status_code == 403

    def test_doctor_sees_public_entries_of_patient(self, client, db, treating_doctor, patient) -> None:
        public = _seed_entry(db, patient)
        _seed_entry(db, patient, is_private=True)

        response = client.get(
            f"/api/v1/emotions?user_id={patient['id']}", headers=db.login(treating_doctor),
        )

        assert response.status_code == 200
        assert [e["id"] for e in response.json()["data"]] == [public["id"]]

    def test_doctor_without_patient_forbidden(self, client, db, doctor, patient) -> None:
        response = client.get(f"/api/v1/emotions?user_id={patient['id']}", headers=db.login(doctor))
        assert response.status_code == 403

    def test_admin_listing_hides_private(self, client, db, admin, patient) -> None:
        _seed_entry(db, patient)
        _seed_entry(db, patient, is_private=True)

        response = client.get("/api/v1/emotions", headers=db.login(admin))

        assert response.json()["total"] == 1

    def test_filters(self, client, db, patient) -> None:
        match = _seed_entry(db, patient, emotion="sad", intensity="HIGH", stress_level=8, tags=["work"])
        _seed_entry(db, patient, emotion="sad", intensity="LOW", stress_level=8, tags=["work"])
        _seed_entry(db, patient, emotion="happy", intensity="HIGH", stress_level=8, tags=["work"])
        _seed_entry(db, patient, emotion="anxious", intensity="HIGH", stress_level=2, tags=["work"])

        response = client.get(
            "/api/v1/emotions?emotion=sad,anxious&intensity=4&min_stress_level=5&tags=work,exam",
            headers=db.login(patient),
        )

        assert [e["id"] for e in response.json()["data"]] == [match["id"]]

    def test_time_range_overrides_dates(self, client, db, patient) -> None:
        recent = _seed_entry(db, patient, recorded_at=_ago(days=2))
        _seed_entry(db, patient, recorded_at=_ago(days=60))

        response = client.get(
            "/api/v1/emotions?time_range=week&start_date=2000-01-01T00:00:00Z",
            headers=db.login(patient),
        )

        assert [e["id"] for e in response.json()["data"]] == [recent["id"]]

    def test_sort_by_intensity_follows_scale(self, client, db, patient) -> None:
        for level in ("MODERATE", "VERY_HIGH", "LOW", "HIGH", "VERY_LOW"):
            _seed_entry(db, patient, intensity=level)

        response = client.get(
            "/api/v1/emotions?sort_by=intensity&sort_order=asc", headers=db.login(patient),
        )

        assert [e["intensity"] for e in response.json()["data"]] == [
            "VERY_LOW", "LOW", "MODERATE", "HIGH", "VERY_HIGH",
        ]

    def test_pagination_total_and_count(self, client, db, patient) -> None:
        for hours in range(5):
            _seed_entry(db, patient, recorded_at=_ago(hours=hours + 1))

        response = client.get("/api/v1/emotions?limit=2&skip=4", headers=db.login(patient))

        body = response.json()
        assert body["total"] == 5
        assert body["count"] == 1

    def test_unknown_emotion_filter(self, client, db, patient) -> None:
        response = client.get("/api/v1/emotions?emotion=sad,bored", headers=db.login(patient))

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_filters"

    def test_limit_out_of_range(self, client, db, patient) -> None:
        response = client.get("/api/v1/emotions?limit=500", headers=db.login(patient))
        assert response.status_code == 422


class TestSearch:

    def test_ukrainian_words(self, client, db, patient) -> None:
        sad = _seed_entry(db, patient, emotion="sad")
        _seed_entry(db, patient, emotion="happy")

        response = client.get("/api/v1/emotions/search?emotions=сумний", headers=db.login(patient))

        assert [e["id"] for e in response.json()["data"]] == [sad["id"]]

    def test_triggers(self, client, db, patient) -> None:
        hit = _seed_entry(db, patient, triggers=["deadline"])
        _seed_entry(db, patient, triggers=["family"])

        response = client.get("/api/v1/emotions/search?triggers=deadline", headers=db.login(patient))

        assert [e["id"] for e in response.json()["data"]] == [hit["id"]]


# ---------------------------------------------------------------------------
# Intensity levels & instant recommendation
# ---------------------------------------------------------------------------

class TestIntensityLevels:

    def test_document(self, client, db, patient) -> None:
        response = client.get("/api/v1/emotions/intensity-levels", headers=db.login(patient))

        body = response.json()
        assert [lvl["level"] for lvl in body["levels"]] == list(_SCORES)
        assert body["valid_inputs"]


class TestInstantRecommendation:

    def test_scale_input(self, client, db, patient) -> None:
        response = client.post(
            "/api/v1/emotions/instant-recommendation", headers=db.login(patient),
            json={"emotion": "anxious", "intensity": 9, "triggers": ["exam"]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["based_on"] == {
            "emotion": "тривожний",
            "emotion_english": "anxious",
            "intensity": 9,
            "triggers": ["exam"],
        }
        assert "Use grounding techniques" in body["recommendations"]["immediate"]
        assert not db.tables.get("emotion_entries")

    def test_level_name_doubles_score(self, client, db, patient) -> None:
        response = client.post(
            "/api/v1/emotions/instant-recommendation", headers=db.login(patient),
            json={"emotion": "сумний", "intensity": "HIGH"},
        )

        assert response.json()["based_on"]["intensity"] == 8

    def test_unknown_emotion(self, client, db, patient) -> None:
        response = client.post(
            "/api/v1/emotions/instant-recommendation", headers=db.login(patient),
            json={"emotion": "meh", "intensity": 5},
        )
        assert response.status_code == 400

    def test_unusable_intensity(self, client, db, patient) -> None:
        response = client.post(
            "/api/v1/emotions/instant-recommendation", headers=db.login(patient),
            json={"emotion": "calm", "intensity": "lots"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_emotion_data"


# ---------------------------------------------------------------------------
# Per-user views
# ---------------------------------------------------------------------------

class TestUserViews:

    def test_time_range(self, client, db, patient) -> None:
        recent = _seed_entry(db, patient, recorded_at=_ago(days=1))
        _seed_entry(db, patient, recorded_at=_ago(days=30))

        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/timerange/week", headers=db.login(patient),
        )

        assert response.status_code == 200
        assert [e["id"] for e in response.json()] == [recent["id"]]

    def test_invalid_time_range(self, client, db, patient) -> None:
        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/timerange/decade", headers=db.login(patient),
        )
        assert response.status_code == 422

    def test_stats_owner_includes_private(self, client, db, patient) -> None:
        _seed_entry(db, patient, emotion="sad", stress_level=6)
        _seed_entry(db, patient, emotion="sad", stress_level=8, is_private=True)

        response = client.get(f"/api/v1/emotions/user/{patient['id']}/stats", headers=db.login(patient))

        body = response.json()
        assert body["total_entries"] == 2
        assert body["average_stress_level"] == 7.0
        assert body["most_common_emotion"] == "sad"
        assert body["emotion_distribution"]["happy"] == 0

    def test_stats_doctor_excludes_private(self, client, db, treating_doctor, patient) -> None:
        _seed_entry(db, patient)
        _seed_entry(db, patient, is_private=True)

        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/stats", headers=db.login(treating_doctor),
        )

        assert response.json()["total_entries"] == 1

    def test_stats_empty(self, client, db, patient) -> None:
        response = client.get(f"/api/v1/emotions/user/{patient['id']}/stats", headers=db.login(patient))

        body = response.json()
        assert body["total_entries"] == 0
        assert body["most_common_emotion"] is None
        assert body["trends_over_time"] == []

    def test_stats_bad_dates(self, client, db, patient) -> None:
        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/stats"
            "?start_date=2026-02-01T00:00:00Z&end_date=2026-01-01T00:00:00Z",
            headers=db.login(patient),
        )
        assert response.status_code == 400

    def test_stats_forbidden_for_other_patient(self, client, db, patient) -> None:
        other = db.add_user()
        response = client.get(f"/api/v1/emotions/user/{patient['id']}/stats", headers=db.login(other))
        assert response.status_code == 403

    def test_patterns(self, client, db, patient) -> None:
        _seed_entry(db, patient, emotion="anxious", intensity="HIGH", recorded_at=_ago(days=1))
        _seed_entry(db, patient, emotion="anxious", intensity="HIGH", recorded_at=_ago(days=1))
        _seed_entry(db, patient, recorded_at=_ago(days=90))

        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/patterns", headers=db.login(patient),
        )

        patterns = response.json()
        assert len(patterns) == 1
        assert patterns[0]["count"] == 2
        assert 1 <= patterns[0]["day_of_week"] <= 7

    def test_analysis(self, client, db, patient) -> None:
        for _ in range(3):
            _seed_entry(db, patient, emotion="anxious", intensity="VERY_HIGH", stress_level=9)

        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/analysis?time_range=week", headers=db.login(patient),
        )

        assert response.status_code == 200
        body = response.json()
        assert "Elevated stress levels detected" in body["analysis"]["concerns"]
        assert body["based_on"] == {
            "time_range": "week",
            "entries_analyzed": 3,
            "average_intensity": 5.0,
            "most_common_intensity": "VERY_HIGH",
            "most_common_emotion": "anxious",
        }

    def test_recommendations(self, client, db, patient) -> None:
        _seed_entry(db, patient, emotion="sad", intensity="LOW", stress_level=3)

        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/recommendations", headers=db.login(patient),
        )

        body = response.json()
        assert body["based_on"]["time_range"] == "week"
        assert body["recommendations"]["professional_help"] is True

    def test_summary(self, client, db, patient) -> None:
        _seed_entry(db, patient, emotion="happy", intensity="LOW", stress_level=2)

        response = client.get(
            f"/api/v1/emotions/user/{patient['id']}/summary?time_range=week", headers=db.login(patient),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["emotional_wellbeing"] == "Good"
        assert body["stats"]["total_entries"] == 1
        assert body["streak"]["current_streak"] == 0
        assert body["metadata"]["time_range"] == "week"
        assert "generated_at" in body["metadata"]
        assert len(db.tables["streaks"]) == 1


# ---------------------------------------------------------------------------
# Single entry
# ---------------------------------------------------------------------------

class TestSingleEntry:

    def test_get_own_private(self, client, db, patient) -> None:
        entry = _seed_entry(db, patient, is_private=True)

        response = client.get(f"/api/v1/emotions/{entry['id']}", headers=db.login(patient))

        assert response.status_code == 200
        assert response.json()["is_private"] is True

    def test_doctor_cannot_see_private(self, client, db, treating_doctor, patient) -> None:
        entry = _seed_entry(db, patient, is_private=True)

        response = client.get(f"/api/v1/emotions/{entry['id']}", headers=db.login(treating_doctor))

        assert response.status_code == 404

    def test_other_patient_forbidden(self, client, db, patient) -> None:
        entry = _seed_entry(db, patient)
        other = db.add_user()

        response = client.get(f"/api/v1/emotions/{entry['id']}", headers=db.login(other))

        assert response.status_code == 403

    def test_missing(self, client, db, patient) -> None:
        response = client.get("/api/v1/emotions/nope", headers=db.login(patient))
        assert response.status_code == 404

    def test_update(self, client, db, patient) -> None:
        entry = _seed_entry(db, patient)

        response = client.put(
            f"/api/v1/emotions/{entry['id']}", headers=db.login(patient),
            json={"intensity": "very_low", "emotion": "втомлений", "stress_level": 0},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["intensity"] == "VERY_LOW"
        assert body["intensity_score"] == 1
        assert body["emotion"] == "tired"
        assert body["stress_level"] == 1
        assert db.tables["emotion_entries"][0]["intensity_score"] == 1

    def test_update_invalid_intensity(self, client, db, patient) -> None:
        entry = _seed_entry(db, patient)

        response = client.put(
            f"/api/v1/emotions/{entry['id']}", headers=db.login(patient), json={"intensity": 9},
        )

        assert response.status_code == 400

    def test_doctor_cannot_update(self, client, db, treating_doctor, patient) -> None:
        entry = _seed_entry(db, patient)

        response = client.put(
            f"/api/v1/emotions/{entry['id']}", headers=db.login(treating_doctor),
            json={"description": "edited"},
        )

        assert response.status_code == 403

    def test_admin_deletes(self, client, db, admin, patient) -> None:
        entry = _seed_entry(db, patient)

        response = client.delete(f"/api/v1/emotions/{entry['id']}", headers=db.login(admin))

        assert response.status_code == 200
        assert response.json()["id"] == entry["id"]
        assert db.tables["emotion_entries"] == []

    def test_admin_deletes_private_entry(self, client, db, admin, patient) -> None:
        entry = _seed_entry(db, patient, is_private=True)

        response = client.delete(f"/api/v1/emotions/{entry['id']}", headers=db.login(admin))

        assert response.status_code == 200
        assert db.tables["emotion_entries"] == []

    def test_admin_updates_private_entry(self, client, db, admin, patient) -> None:
        entry = _seed_entry(db, patient, is_private=True)

        response = client.put(
            f"/api/v1/emotions/{entry['id']}", headers=db.login(admin),
            json={"description": "moderated"},
        )

        assert response.status_code == 200
        assert response.json()["description"] == "moderated"

    def test_admin_cannot_read_private_entry(self, client, db, admin, patient) -> None:
        entry = _seed_entry(db, patient, is_private=True)

        response = client.get(f"/api/v1/emotions/{entry['id']}", headers=db.login(admin))

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "emotion_not_found"
