"""
Unit tests for package recommendation scoring
"""

from types import SimpleNamespace

import pytest

from tripdesk.services.recommender import rank_packages, score_package


def make_lead(**overrides):
    values = {
        "destination": "Bali",
        "trip_type": "BEACH",
        "budget": 1000.0,
        "duration": 5,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def make_package(package_id=1, **overrides):
    values = {
        "id": package_id,
        "destinations": ["Bali"],
        "recommended_for_trip_types": ["BEACH"],
        "price_adult": 200.0,
        "rating": 4.5,
        "duration_days": 3,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestScorePackage:
    """Weighted score and reasons for one lead / package pair"""

    def test_perfect_match_is_clamped_to_one(self):
        score, reasons = score_package(make_lead(), make_package())

        assert score == 1.0
        assert reasons == [
            "Matches destination",
            "Suitable for beach trips",
            "Within budget range",
            "Highly rated",
            "Fits trip duration",
        ]

    def test_no_match_keeps_base_score(self):
        package = make_package(
            destinations=["Paris"],
            recommended_for_trip_types=["CITY_BREAK"],
            price_adult=900.0,
            rating=3.2,
            duration_days=10,
        )

        score, reasons = score_package(make_lead(), package)

        assert score == 0.5
        assert reasons == []

    def test_destination_match_is_case_insensitive(self):
        score, reasons = score_package(make_lead(destination="bali"),
                                       make_package(destinations=["BALI"], recommended_for_trip_types=[],
                                                    price_adult=5000.0, rating=0.0, duration_days=9))

        assert score == pytest.approx(0.7)
        assert reasons == ["Matches destination"]

    def test_budget_threshold(self):
        within = make_package(destinations=[], recommended_for_trip_types=[], rating=0.0,
                              duration_days=99, price_adult=299.0)
        over_limit = make_package(destinations=[], recommended_for_trip_types=[], rating=0.0,
                                  duration_days=99, price_adult=300.01)

        assert score_package(make_lead(), within) == (pytest.approx(0.6), ["Within budget range"])
        assert score_package(make_lead(), over_limit) == (0.5, [])

    def test_rating_threshold_is_inclusive(self):
        package = make_package(destinations=[], recommended_for_trip_types=[], price_adult=9999.0,
                               duration_days=99, rating=4.0)

        score, reasons = score_package(make_lead(), package)

        assert score == pytest.approx(0.6)
        assert reasons == ["Highly rated"]

    def test_trip_type_reason_uses_lower_case(self):
        package = make_package(destinations=[], recommended_for_trip_types=["CITY_BREAK"],
                               price_adult=9999.0, rating=0.0, duration_days=99)

        score, reasons = score_package(make_lead(trip_type="CITY_BREAK"), package)

        assert score == pytest.approx(0.65)
        assert reasons == ["Suitable for city_break trips"]

    def test_missing_lists_do_not_match(self):
        package = make_package(destinations=None, recommended_for_trip_types=None,
                               price_adult=9999.0, rating=None, duration_days=99)

        assert score_package(make_lead(), package) == (0.5, [])

    def test_custom_budget_share(self):
        package = make_package(destinations=[], recommended_for_trip_types=[], rating=0.0,
                               duration_days=99, price_adult=500.0)

        assert score_package(make_lead(), package, budget_share=0.5)[0] == pytest.approx(0.6)
        assert score_package(make_lead(), package)[0] == 0.5


class TestRankPackages:
    """Ordering and truncation of scored candidates"""

    def test_sorted_by_score_descending(self):
        weak = make_package(1, destinations=["Paris"], rating=1.0)
        strong = make_package(2)
        middle = make_package(3, rating=1.0, recommended_for_trip_types=[])

        ranked = rank_packages(make_lead(), [weak, strong, middle])

        assert [pkg.id for pkg, _, _ in ranked] == [2, 3, 1]
        scores = [score for _, score, _ in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_input_order(self):
        packages = [make_package(i) for i in (5, 3, 9)]

        ranked = rank_packages(make_lead(), packages)

        assert [pkg.id for pkg, _, _ in ranked] == [5, 3, 9]

    def test_limit_truncates(self):
        packages = [make_package(i, rating=float(i % 5)) for i in range(1, 16)]

        ranked = rank_packages(make_lead(), packages, limit=10)

        assert len(ranked) == 10

    def test_empty_candidates(self):
        assert rank_packages(make_lead(), []) == []
