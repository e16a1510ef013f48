"""
Lead, recommendation and leads marketplace API tests
"""

import pytest

API = "/api/v1"


def marketplace_offer(client, **overrides):
    payload = {
        "customer_name": "Jonas Brandt",
        "customer_email": "jonas@example.com",
        "destination": "Lisbon",
        "trip_type": "CULTURAL",
        "budget": 3000.0,
        "duration": 4,
        "travelers": 2,
        "preferences": ["food", "history"],
        "lead_price": 25.0,
    }
    payload.update(overrides)
    response = client.post(f"{API}/marketplace/leads", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestLeads:

    def test_create_lead_defaults(self, make_lead):
        lead = make_lead()

        assert lead["status"] == "NEW"
        assert lead["source"] == "DIRECT"
        assert lead["preferred_start_date"] == "2030-06-01"
        assert lead["preferences"] == []

    def test_create_rejects_unknown_trip_type(self, client):
        response = client.post(f"{API}/leads", json={
            "agent_id": "agent-1", "customer_name": "A", "customer_email": "a@b.c",
            "destination": "Rome", "trip_type": "SAFARI",
        })

        assert response.status_code == 422
        assert "Invalid trip_type" in response.json()["error"]

    def test_create_rejects_inverted_dates(self, client, make_lead):
        response = client.post(f"{API}/leads", json={
            "agent_id": "agent-1", "customer_name": "A", "customer_email": "a@b.c",
            "destination": "Rome", "trip_type": "CULTURAL",
            "preferred_start_date": "2030-06-10", "preferred_end_date": "2030-06-01",
        })

        assert response.status_code == 422

    def test_list_is_scoped_to_agent(self, client, make_lead):
        make_lead(customer_name="First")
        make_lead(customer_name="Second")
        make_lead(agent_id="agent-2", customer_name="Elsewhere")

        leads = client.get(f"{API}/leads", params={"agent_id": "agent-1"}).json()

        assert {lead["customer_name"] for lead in leads} == {"First", "Second"}

    def test_status_update_and_filter(self, client, make_lead):
        lead = make_lead()
        make_lead(customer_name="Untouched")

        response = client.patch(f"{API}/leads/{lead['id']}/status", json={"status": "CONTACTED"})
        assert response.status_code == 200
        assert response.json()["status"] == "CONTACTED"

        contacted = client.get(f"{API}/leads", params={"agent_id": "agent-1", "status": "CONTACTED"}).json()
        assert [item["id"] for item in contacted] == [lead["id"]]

    def test_status_update_rejects_unknown_status(self, client, make_lead):
        lead = make_lead()

        response = client.patch(f"{API}/leads/{lead['id']}/status", json={"status": "WON"})

        assert response.status_code == 422

    def test_missing_lead(self, client):
        response = client.get(f"{API}/leads/404")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Lead not found"}


class TestRecommendations:

    def test_generate_scores_active_destination_packages(self, client, make_package, make_lead):
        best = make_package(title="Glacier Hike")
        weaker = make_package(title="Heli Flight", price_adult=900.0, rating=3.0,
                              recommended_for_trip_types=[])
        make_package(title="Draft Hike", status="DRAFT")
        make_package(title="Lisbon Tram", destinations=["Lisbon"])
        lead = make_lead()

        response = client.post(f"{API}/leads/{lead['id']}/recommendations")

        assert response.status_code == 200
        recs = response.json()
        assert [r["package_id"] for r in recs] == [best["id"], weaker["id"]]
        assert recs[0]["recommendation_score"] == 1.0
        assert recs[0]["reason"].startswith("Matches destination, Suitable for adventure trips")
        assert recs[1]["recommendation_score"] == 0.75
        assert recs[1]["reason"] == "Matches destination, Fits trip duration"

    def test_regenerate_updates_in_place(self, client, make_package, make_lead):
        make_package()
        lead = make_lead()

        first = client.post(f"{API}/leads/{lead['id']}/recommendations").json()
        second = client.post(f"{API}/leads/{lead['id']}/recommendations").json()
        stored = client.get(f"{API}/leads/{lead['id']}/recommendations").json()

        assert len(stored) == 1
        assert first[0]["id"] == second[0]["id"] == stored[0]["id"]

    @pytest.mark.parametrize("stored,asked", [("Zürich", "zürich"), ("Interlaken", "INTERLAKEN")])
    def test_candidate_destination_ignores_case(self, client, make_package, make_lead, stored, asked):
        package = make_package(destinations=[stored])
        lead = make_lead(destination=asked)

        recs = client.post(f"{API}/leads/{lead['id']}/recommendations").json()

        assert [r["package_id"] for r in recs] == [package["id"]]
        assert recs[0]["reason"].startswith("Matches destination")

    def test_no_candidates(self, client, make_lead):
        lead = make_lead(destination="Atlantis")

        assert client.post(f"{API}/leads/{lead['id']}/recommendations").json() == []

    def test_unknown_lead(self, client):
        response = client.post(f"{API}/leads/12345/recommendations")

        assert response.status_code == 404


class TestMarketplace:

    def test_only_available_offers_are_listed(self, client):
        lisbon = marketplace_offer(client)
        marketplace_offer(client, destination="Porto", budget=800.0)

        client.post(f"{API}/marketplace/leads/{lisbon['id']}/purchase", json={"agent_id": "agent-9"})
        listed = client.get(f"{API}/marketplace/leads").json()

        assert [offer["destination"] for offer in listed] == ["Porto"]

    def test_filters(self, client):
        marketplace_offer(client, destination="Lisbon", budget=3000.0)
        marketplace_offer(client, destination="Porto", budget=800.0, trip_type="BEACH")

        by_destination = client.get(f"{API}/marketplace/leads", params={"destination": "lis"}).json()
        by_budget = client.get(f"{API}/marketplace/leads", params={"max_budget": 1000}).json()
        by_type = client.get(f"{API}/marketplace/leads", params={"trip_type": "BEACH"}).json()

        assert [o["destination"] for o in by_destination] == ["Lisbon"]
        assert [o["destination"] for o in by_budget] == ["Porto"]
        assert [o["destination"] for o in by_type] == ["Porto"]

    def test_purchase_creates_agent_lead(self, client):
        offer = marketplace_offer(client)

        response = client.post(f"{API}/marketplace/leads/{offer['id']}/purchase",
                               json={"agent_id": "agent-9"})

        assert response.status_code == 201
        purchase = response.json()
        assert purchase["status"] == "PURCHASED"
        assert purchase["purchase_price"] == 25.0
        assert purchase["lead"]["agent_id"] == "agent-9"
        assert purchase["lead"]["source"] == "MARKETPLACE"
        assert purchase["lead"]["preferences"] == ["food", "history"]

        agent_leads = client.get(f"{API}/leads", params={"agent_id": "agent-9"}).json()
        assert [lead["id"] for lead in agent_leads] == [purchase["lead_id"]]

    def test_second_purchase_conflicts(self, client):
        offer = marketplace_offer(client)
        client.post(f"{API}/marketplace/leads/{offer['id']}/purchase", json={"agent_id": "agent-9"})

        response = client.post(f"{API}/marketplace/leads/{offer['id']}/purchase",
                               json={"agent_id": "agent-10"})

        assert response.status_code == 409
        assert response.json() == {"success": False, "error": "Lead not found or no longer available"}

    def test_purchase_unknown_offer(self, client):
        response = client.post(f"{API}/marketplace/leads/999/purchase", json={"agent_id": "agent-9"})

        assert response.status_code == 409

    def test_purchased_list(self, client):
        offer = marketplace_offer(client)
        client.post(f"{API}/marketplace/leads/{offer['id']}/purchase", json={"agent_id": "agent-9"})

        purchased = client.get(f"{API}/marketplace/purchased", params={"agent_id": "agent-9"}).json()
        nobody = client.get(f"{API}/marketplace/purchased", params={"agent_id": "agent-10"}).json()

        assert len(purchased) == 1
        assert purchased[0]["marketplace_lead"]["id"] == offer["id"]
        assert purchased[0]["marketplace_lead"]["status"] == "PURCHASED"
        assert nobody == []
