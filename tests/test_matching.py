"""
Unit tests for the ride search ranking.
Covers:
- Fuzzy text matching of place names
- Vehicle similarity table
- Date, vehicle and composite scoring
- Ranker filtering, ordering and truncation
- Regional text fallback and geographic ordering
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from matching import (
    fuzzy_text_match, is_vehicle_similar, date_score, vehicle_score, match_type_for,
    score_ride, rank_matches, text_based_match, sort_geographic, haversine_km, round_km,
    normalize, round_half_up, days_apart,
)
import matching
from models import Ride


def ride(origin="Delhi", destination="Chandigarh", departure=datetime(2026, 11, 5, 8, 0, tzinfo=timezone.utc), vehicle="sedan"):
    return Ride(
        driver_id="d1", origin=origin, destination=destination, departure_time=departure,
        seats_total=4, seats_available=3, price_per_seat=450.0, vehicle_type=vehicle,
    )


def candidate(location, confidence, days=None):
    return {"route_match_score": location, "confidence_score": confidence, "date_offset_days": days}


# ────────────────────────── fuzzy text matcher ──────────────────────────────

def test_normalize_trims_and_lowercases():
    assert normalize("  New Delhi ") == "new delhi"
    assert normalize(None) == ""


def test_fuzzy_exact_match_ignores_case():
    assert fuzzy_text_match("Delhi", "delhi ") == 100


def test_fuzzy_containment_scores_80():
    assert fuzzy_text_match("Delhi", "New Delhi Railway Station") == 80
    assert fuzzy_text_match("Connaught Place, Delhi", "Delhi") == 80


def test_fuzzy_disjoint_strings_score_zero():
    assert fuzzy_text_match("Mumbai", "Chennai") == 0


def test_fuzzy_partial_word_overlap():
    # sector and chandigarh overlap, road does not: 2/3 of 60
    assert fuzzy_text_match("Sector 17 Chandigarh Road", "Chandigarh Sector Market") == 40


def test_fuzzy_ignores_short_words():
    assert fuzzy_text_match("to of", "Delhi Gate") == 0


def test_fuzzy_empty_input():
    assert fuzzy_text_match("", "Delhi") == 0
    assert fuzzy_text_match("Delhi", None) == 0


# ────────────────────────── vehicle similarity ──────────────────────────────

@pytest.mark.parametrize("ride_type,preferred", [
    ("sedan", ["car"]),
    ("car", ["sedan"]),
    ("hatchback", ["car"]),
    ("suv", ["car"]),
    ("auto", ["rickshaw"]),
    ("rickshaw", ["auto"]),
    ("bike", ["motorcycle"]),
    ("motorcycle", ["Bike"]),
])
def test_similar_vehicles(ride_type, preferred):
    assert is_vehicle_similar(ride_type, preferred)


def test_dissimilar_and_unknown_vehicles():
    assert not is_vehicle_similar("bike", ["car"])
    assert not is_vehicle_similar("spaceship", ["car"])
    assert not is_vehicle_similar("car", ["spaceship"])


# ────────────────────────── scoring ─────────────────────────────────────────

def test_date_score_offsets():
    departure = datetime(2026, 11, 5, 8, 0, tzinfo=timezone.utc)
    assert date_score(departure, date(2026, 11, 5)) == 100
    assert date_score(departure, date(2026, 11, 4)) == 80
    assert date_score(departure, date(2026, 11, 7)) == 60
    assert date_score(departure, date(2026, 11, 2)) == 40
    assert date_score(departure, date(2026, 11, 9)) == 0
    assert date_score(departure, None) == 100


def test_vehicle_score():
    assert vehicle_score("sedan", None) == 100
    assert vehicle_score("sedan", ["Sedan"]) == 100
    assert vehicle_score("sedan", ["car"]) == 70
    assert vehicle_score("sedan", ["bus"]) == 30


def test_match_type_thresholds():
    assert match_type_for(71) == "direct"
    assert match_type_for(70) == "intermediate"
    assert match_type_for(41) == "intermediate"
    assert match_type_for(40) == "fuzzy"


def test_score_ride_direct_match():
    m = score_ride(ride(), "Connaught Place, Delhi", "Sector 17, Chandigarh")
    assert m["route_match_score"] == 80
    assert m["confidence_score"] == 88
    assert m["match_type"] == "direct"
    assert m["location_breakdown"] == {"origin_match": 80, "dest_match": 80}
    assert m["date_offset_days"] is None


def test_score_ride_weights_date_and_vehicle():
    m = score_ride(ride(), "Delhi", "Chandigarh", date(2026, 11, 8), ["car"])
    # 0.6*100 + 0.3*40 + 0.1*70
    assert m["confidence_score"] == 79
    assert m["date_offset_days"] == 3


def test_confidence_stays_within_bounds():
    worst = score_ride(ride(), "Mumbai", "Pune", date(2027, 1, 1), ["bus"])
    best = score_ride(ride(), "Delhi", "Chandigarh", date(2026, 11, 5), ["sedan"])
    assert 0 <= worst["confidence_score"] <= 100
    assert best["confidence_score"] == 100
    assert worst["match_type"] == "fuzzy"


# ────────────────────────── ranker ──────────────────────────────────────────

def test_ranker_drops_low_confidence():
    ranked = rank_matches([candidate(10, 20), candidate(30, 21), candidate(0, 5)])
    assert [m["confidence_score"] for m in ranked] == [21]


def test_ranker_truncates_to_fifty():
    ranked = rank_matches([candidate(90, 90) for _ in range(60)])
    assert len(ranked) == 50


def test_ranker_location_gap_is_decisive():
    a = candidate(90, 60)
    b = candidate(70, 95)
    assert rank_matches([b, a]) == [a, b]


def test_ranker_prefers_closer_date_when_locations_are_close():
    far = candidate(80, 70, days=3)
    near = candidate(75, 60, days=0)
    assert rank_matches([far, near], travel_date=date(2026, 11, 5)) == [near, far]


def test_ranker_falls_back_to_confidence():
    a = candidate(80, 70, days=1)
    b = candidate(78, 80, days=0)
    assert rank_matches([a, b], travel_date=date(2026, 11, 5)) == [b, a]
    assert rank_matches([candidate(80, 70), candidate(78, 80)])[0]["confidence_score"] == 80


# ────────────────────────── text fallback & geographic order ────────────────

def test_text_match_ncr_and_tricity_aliases():
    r = {"origin": "Delhi", "origin_state": "Delhi", "destination": "Mohali", "destination_state": "Mohali"}
    assert text_based_match(r, {"location": "Gurgaon", "state": "Haryana"}, {"location": "Kharar", "state": "Punjab"})


def test_text_match_by_location_substring():
    r = {"origin": "Delhi ISBT", "destination": "Chandigarh Sector 43"}
    assert text_based_match(r, {"location": "Delhi"}, {"location": "Chandigarh"})


def test_text_match_requires_both_ends():
    r = {"origin": "Delhi", "origin_state": "Delhi", "destination": "Jaipur", "destination_state": "Rajasthan"}
    assert not text_based_match(r, {"location": "Delhi", "state": "Delhi"}, {"location": "Pune", "state": "Maharashtra"})


def test_sort_geographic_order():
    rides = [
        {"ride_id": "a", "distances": None, "seats_available": 2, "departure_time": "2026-11-05T08:00:00"},
        {"ride_id": "b", "distances": {"total_km": 12.5}, "seats_available": 1, "departure_time": "2026-11-05T09:00:00"},
        {"ride_id": "c", "distances": {"total_km": 3.0}, "seats_available": 1, "departure_time": "2026-11-05T10:00:00"},
        {"ride_id": "d", "distances": None, "seats_available": 4, "departure_time": "2026-11-05T11:00:00"},
        {"ride_id": "e", "distances": None, "seats_available": 4, "departure_time": "2026-11-05T07:00:00"},
    ]
    assert [r["ride_id"] for r in sort_geographic(rides)] == ["c", "b", "e", "d", "a"]


# ────────────────────────── distance helpers ────────────────────────────────

def test_haversine_zero():
    assert haversine_km((28.6, 77.2), (28.6, 77.2)) == 0.0


def test_haversine_delhi_to_chandigarh():
    d = haversine_km((28.6139, 77.2090), (30.7333, 76.7794))
    assert 230 < d < 250


def test_round_km():
    assert round_km(12345) == 12.3


# ────────────────────────── rounding & time zones ───────────────────────────

def test_round_half_up():
    assert round_half_up(20.5) == 21
    assert round_half_up(70.5) == 71
    assert round_half_up(20.49) == 20


def test_half_point_confidence_survives_the_cutoff(monkeypatch):
    monkeypatch.setattr(matching, "fuzzy_text_match", lambda search, target: 5 if search == "A" else 0)
    m = score_ride(ride(), "A", "B", date(2026, 11, 8), ["car"])
    # 0.6*2.5 + 0.3*40 + 0.1*70 = 20.5
    assert m["confidence_score"] == 21
    assert rank_matches([m]) == [m]


def test_days_apart_uses_utc_calendar_day():
    ist = timezone(timedelta(hours=5, minutes=30))
    # 02:00 IST on the 6th is still the 5th in UTC
    assert days_apart(datetime(2026, 11, 6, 2, 0, tzinfo=ist), date(2026, 11, 5)) == 0
    assert days_apart("2026-11-07T08:00:00+00:00", date(2026, 11, 5)) == 2
    assert days_apart(datetime(2026, 11, 5, 8, 0), date(2026, 11, 4)) == 1
