"""
Itinerary builder API tests: session flow from package selection to finalize
"""

import pytest

API = "/api/v1"
BUILDER = f"{API}/itinerary-builder"


@pytest.fixture
def session(client, make_lead):
    lead = make_lead()
    response = client.post(f"{BUILDER}/sessions", json={"lead_id": lead["id"], "agent_id": "agent-1"})
    assert response.status_code == 201, response.text
    return response.json()


class TestSessions:

    def test_new_session_starts_at_package_selection(self, session):
        assert session["status"] == "PACKAGE_SELECTION"
        assert session["selected_packages"] == []
        assert session["day_assignments"] == []
        assert session["itinerary_id"] is None

    def test_session_requires_lead(self, client):
        response = client.post(f"{BUILDER}/sessions", json={"lead_id": 77, "agent_id": "agent-1"})

        assert response.status_code == 404
        assert response.json()["error"] == "Lead not found"

    def test_patch_rejects_unknown_status(self, client, session):
        response = client.patch(f"{BUILDER}/sessions/{session['id']}", json={"status": "CHECKOUT"})

        assert response.status_code == 422

    def test_step_navigation(self, client, session):
        url = f"{BUILDER}/sessions/{session['id']}/step"

        assert client.post(url, json={"action": "next"}).json()["status"] == "DAY_PLANNING"
        assert client.post(url, json={"action": "go_to", "step": "REVIEW"}).json()["status"] == "REVIEW"
        assert client.post(url, json={"action": "next"}).json()["status"] == "REVIEW"
        assert client.post(url, json={"action": "previous"}).json()["status"] == "DETAILS"

        response = client.post(url, json={"action": "go_to", "step": "PAYMENT"})
        assert response.status_code == 422


class TestPackageSelection:

    def test_add_update_remove(self, client, session, make_package):
        package = make_package(price_adult=100.0)
        base = f"{BUILDER}/sessions/{session['id']}/packages"

        data = client.post(base, json={"package_id": package["id"]}).json()
        assert [s["package_id"] for s in data["selected_packages"]] == [package["id"]]
        assert data["selected_packages"][0]["operator_name"] == "Alpine Trails"

        data = client.post(base, json={"package_id": package["id"]}).json()
        assert len(data["selected_packages"]) == 1

        data = client.patch(f"{base}/{package['id']}", json={"quantity": 3}).json()
        assert data["selected_packages"][0]["total_price"] == 300.0

        response = client.patch(f"{base}/{package['id']}", json={"quantity": 0})
        assert response.status_code == 422

        data = client.delete(f"{base}/{package['id']}").json()
        assert data["selected_packages"] == []

    def test_draft_package_cannot_be_selected(self, client, session, make_package):
        package = make_package(status="DRAFT")

        response = client.post(f"{BUILDER}/sessions/{session['id']}/packages",
                               json={"package_id": package["id"]})

        assert response.status_code == 422
        assert response.json()["error"] == "Only active packages can be added"

    def test_search_flags_recommended_packages(self, client, session, make_package):
        recommended = make_package(title="Glacier Hike")
        other = make_package(title="Lisbon Tram", destinations=["Lisbon"], rating=3.0)
        client.post(f"{API}/leads/{session['lead_id']}/recommendations")

        results = client.post(f"{BUILDER}/packages/search", json={"lead_id": session["lead_id"]}).json()

        by_id = {item["id"]: item for item in results}
        assert by_id[recommended["id"]]["is_recommended"] is True
        assert by_id[recommended["id"]]["recommendation_score"] == 1.0
        assert by_id[other["id"]]["is_recommended"] is False
        assert by_id[other["id"]]["recommendation_score"] is None

    def test_search_filters_and_sorting(self, client, make_package):
        make_package(title="Cheap", price_adult=30.0, type="ACTIVITY")
        make_package(title="Pricey", price_adult=300.0, type="TRANSFERS")
        make_package(title="Hidden", price_adult=10.0, status="DRAFT")

        by_price = client.post(f"{BUILDER}/packages/search",
                               json={"sort_by": "price", "sort_order": "asc"}).json()
        transfers = client.post(f"{BUILDER}/packages/search", json={"package_types": ["TRANSFERS"]}).json()

        assert [p["title"] for p in by_price] == ["Cheap", "Pricey"]
        assert [p["title"] for p in transfers] == ["Pricey"]


class TestDayPlanningAndFinalize:

    def _plan(self, client, session, package):
        """Select the package twice over, spread it over three days and add a dinner"""
        sid = session["id"]
        client.post(f"{BUILDER}/sessions/{sid}/packages", json={"package_id": package["id"]})
        client.patch(f"{BUILDER}/sessions/{sid}/packages/{package['id']}", json={"quantity": 2})
        client.post(f"{BUILDER}/sessions/{sid}/days")
        client.post(f"{BUILDER}/sessions/{sid}/assignments",
                    json={"package_id": package["id"], "day_id": "day-1"})
        response = client.post(f"{BUILDER}/sessions/{sid}/days/day-2/activities", json={
            "activity_name": "Fondue dinner", "activity_type": "MEAL", "cost": 50.0, "duration_hours": 2,
        })
        assert response.status_code == 200, response.text
        return response.json()

    def test_build_days_from_lead(self, client, session):
        data = client.post(f"{BUILDER}/sessions/{session['id']}/days").json()

        days = data["day_assignments"]
        assert [d["day_id"] for d in days] == ["day-1", "day-2", "day-3"]
        assert [d["date"] for d in days] == ["2030-06-01", "2030-06-02", "2030-06-03"]

    def test_assignment_and_activities(self, client, session, make_package):
        package = make_package(price_adult=100.0, duration_hours=6)
        data = self._plan(client, session, package)

        day_one, day_two = data["day_assignments"][0], data["day_assignments"][1]
        assert day_one["package_ids"] == [package["id"]]
        assert day_one["total_cost"] == 200.0
        assert day_one["estimated_duration"] == 6.0
        assert day_two["activities"][0]["activity_name"] == "Fondue dinner"
        assert data["selected_packages"][0]["assigned_to_days"] == ["day-1"]

        activity_id = day_two["activities"][0]["id"]
        data = client.patch(f"{BUILDER}/sessions/{session['id']}/activities/{activity_id}",
                            json={"cost": 80.0}).json()
        assert data["day_assignments"][1]["total_cost"] == 80.0

        data = client.delete(f"{BUILDER}/sessions/{session['id']}/activities/{activity_id}").json()
        assert data["day_assignments"][1]["activities"] == []

        data = client.post(f"{BUILDER}/sessions/{session['id']}/assignments/remove",
                           json={"package_id": package["id"], "day_id": "day-1"}).json()
        assert data["day_assignments"][0]["package_ids"] == []
        assert data["selected_packages"][0]["assigned_to_days"] == []

    def test_reorder_activities(self, client, session):
        sid = session["id"]
        client.post(f"{BUILDER}/sessions/{sid}/days")
        for name in ("Breakfast", "Museum", "Dinner"):
            data = client.post(f"{BUILDER}/sessions/{sid}/days/day-1/activities",
                               json={"activity_name": name}).json()
        ids = [a["id"] for a in data["day_assignments"][0]["activities"]]

        data = client.put(f"{BUILDER}/sessions/{sid}/days/day-1/activities/order",
                          json={"activity_ids": [ids[2], ids[1], ids[0]]}).json()

        names = [a["activity_name"] for a in data["day_assignments"][0]["activities"]]
        assert names == ["Dinner", "Museum", "Breakfast"]

    def test_budget_and_validation(self, client, session, make_package):
        package = make_package(price_adult=100.0)
        self._plan(client, session, package)

        budget = client.get(f"{BUILDER}/sessions/{session['id']}/budget").json()
        validation = client.get(f"{BUILDER}/sessions/{session['id']}/validation").json()

        assert budget["total"] == 2000.0
        assert budget["used"] == 250.0
        assert budget["remaining"] == 1750.0
        assert budget["over_budget"] is False
        assert validation["is_valid"] is True
        assert validation["warnings"] == []

    def test_finalize_empty_session_fails(self, client, session):
        response = client.post(f"{BUILDER}/sessions/{session['id']}/finalize")

        assert response.status_code == 422
        assert "At least one package must be selected" in response.json()["error"]

    def test_finalize_creates_itinerary(self, client, session, make_package):
        package = make_package(price_adult=100.0)
        self._plan(client, session, package)

        response = client.post(f"{BUILDER}/sessions/{session['id']}/finalize",
                               json={"title": "Swiss Alps Escape"})

        assert response.status_code == 201
        itinerary = response.json()
        assert itinerary["title"] == "Swiss Alps Escape"
        assert itinerary["status"] == "DRAFT"
        assert itinerary["start_date"] == "2030-06-01"
        assert itinerary["end_date"] == "2030-06-03"
        assert itinerary["duration_days"] == 3
        assert itinerary["total_cost"] == 250.0
        assert itinerary["agent_commission"] == 25.0
        assert itinerary["customer_price"] == 275.0
        assert len(itinerary["days"]) == 3
        assert [a["activity_type"] for a in itinerary["days"][0]["activities"]] == ["PACKAGE"]
        assert itinerary["packages"][0]["quantity"] == 2
        assert itinerary["packages"][0]["total_price"] == 200.0

        stored = client.get(f"{BUILDER}/sessions/{session['id']}").json()
        assert stored["itinerary_id"] == itinerary["id"]
        assert stored["status"] == "REVIEW"

    def test_finalize_default_title(self, client, session, make_package):
        package = make_package()
        self._plan(client, session, package)

        itinerary = client.post(f"{BUILDER}/sessions/{session['id']}/finalize").json()

        assert itinerary["title"] == "Interlaken trip for Maya Keller"

    def test_quantity_change_recosts_assigned_day(self, client, session, make_package):
        package = make_package(price_adult=100.0)
        self._plan(client, session, package)

        data = client.patch(f"{BUILDER}/sessions/{session['id']}/packages/{package['id']}",
                            json={"quantity": 3}).json()
        budget = client.get(f"{BUILDER}/sessions/{session['id']}/budget").json()

        assert data["day_assignments"][0]["activities"][0]["cost"] == 300.0
        assert data["day_assignments"][0]["total_cost"] == 300.0
        assert budget["package_costs"][str(package["id"])] == 300.0
        assert budget["daily_costs"]["day-1"] == 300.0
        assert budget["used"] == 350.0

        itinerary = client.post(f"{BUILDER}/sessions/{session['id']}/finalize").json()
        assert itinerary["days"][0]["activities"][0]["cost"] == 300.0
        assert itinerary["total_cost"] == 350.0

    def test_finalize_twice_conflicts(self, client, session, make_package):
        package = make_package()
        self._plan(client, session, package)
        first = client.post(f"{BUILDER}/sessions/{session['id']}/finalize").json()

        response = client.post(f"{BUILDER}/sessions/{session['id']}/finalize")

        assert response.status_code == 409
        assert response.json() == {"success": False, "error": "Session already finalized"}
        assert client.get(f"{BUILDER}/sessions/{session['id']}").json()["itinerary_id"] == first["id"]
        itineraries = client.get(f"{API}/itineraries", params={"agent_id": "agent-1"}).json()
        assert [i["id"] for i in itineraries] == [first["id"]]

    def test_stored_day_activities(self, client, session, make_package):
        package = make_package()
        self._plan(client, session, package)
        itinerary = client.post(f"{BUILDER}/sessions/{session['id']}/finalize").json()
        day_id = itinerary["days"][2]["id"]

        saved = client.put(f"{BUILDER}/days/{day_id}/activities", json={"activities": [
            {"activity_name": "Spa", "activity_type": "CUSTOM", "cost": 70.0, "order_index": 1},
            {"activity_name": "Checkout", "activity_type": "TRANSFER", "order_index": 0},
        ]}).json()

        assert [a["activity_name"] for a in saved] == ["Checkout", "Spa"]
        assert client.get(f"{BUILDER}/days/{day_id}/activities").json() == saved

    def test_lead_data(self, client, session):
        lead = client.get(f"{BUILDER}/leads/{session['lead_id']}").json()

        assert lead["customer_name"] == "Maya Keller"
