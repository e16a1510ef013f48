"""
Itinerary records, customer bookings, booking requests and commissions
"""

import re

import pytest

API = "/api/v1"


@pytest.fixture
def itinerary(client, make_lead, make_package):
    """A stored itinerary with one package line (quantity 2 at 100)"""
    package = make_package(price_adult=100.0)
    lead = make_lead()
    response = client.post(f"{API}/itineraries", json={
        "lead_id": lead["id"],
        "title": "Alps long weekend",
        "start_date": "2030-06-01",
        "end_date": "2030-06-02",
        "days": [
            {"date": "2030-06-01", "location": "Interlaken",
             "activities": [{"activity_name": "Glacier Hike", "activity_type": "PACKAGE",
                             "package_id": package["id"], "cost": 200.0}]},
            {"date": "2030-06-02", "location": "Interlaken", "meals": ["Breakfast"]},
        ],
        "selected_packages": [{"package_id": package["id"], "quantity": 2}],
    })
    assert response.status_code == 201, response.text
    data = response.json()
    data["package"] = package
    return data


class TestItineraries:

    def test_create_with_days_and_packages(self, itinerary):
        assert itinerary["status"] == "DRAFT"
        assert itinerary["agent_id"] == "agent-1"
        assert itinerary["duration_days"] == 2
        assert [d["day_number"] for d in itinerary["days"]] == [1, 2]
        assert itinerary["days"][1]["meals"] == ["Breakfast"]
        assert itinerary["days"][0]["activities"][0]["package_id"] == itinerary["package"]["id"]
        line = itinerary["packages"][0]
        assert line["unit_price"] == 100.0
        assert line["total_price"] == 200.0
        assert line["operator_name"] == "Alpine Trails"

    def test_create_rejects_inverted_dates(self, client, make_lead):
        lead = make_lead()

        response = client.post(f"{API}/itineraries", json={
            "lead_id": lead["id"], "title": "Backwards",
            "start_date": "2030-06-05", "end_date": "2030-06-01",
        })

        assert response.status_code == 422

    def test_list_and_status(self, client, itinerary):
        response = client.patch(f"{API}/itineraries/{itinerary['id']}/status", json={"status": "APPROVED"})
        assert response.json()["status"] == "APPROVED"

        approved = client.get(f"{API}/itineraries", params={"agent_id": "agent-1", "status": "APPROVED"}).json()
        drafts = client.get(f"{API}/itineraries", params={"agent_id": "agent-1", "status": "DRAFT"}).json()

        assert [i["id"] for i in approved] == [itinerary["id"]]
        assert drafts == []
        assert "days" not in approved[0]

    def test_unknown_status_rejected(self, client, itinerary):
        response = client.patch(f"{API}/itineraries/{itinerary['id']}/status", json={"status": "LOST"})

        assert response.status_code == 422

    def test_send_via_whatsapp(self, client, itinerary):
        sent = client.post(f"{API}/itineraries/{itinerary['id']}/send", json={"method": "whatsapp"}).json()

        assert sent["status"] == "SENT"
        assert sent["sent_via_whatsapp"] is True
        assert sent["sent_via_email"] is False
        assert sent["whatsapp_sent_at"] is not None

    def test_send_rejects_unknown_channel(self, client, itinerary):
        response = client.post(f"{API}/itineraries/{itinerary['id']}/send", json={"method": "fax"})

        assert response.status_code == 422

    def test_custom_item(self, client, itinerary):
        response = client.post(f"{API}/itineraries/{itinerary['id']}/custom-items", json={
            "name": "Zurich airport transfer", "type": "TRANSFER", "cost": 90.0,
        })

        assert response.status_code == 201
        stored = client.get(f"{API}/itineraries/{itinerary['id']}").json()
        assert [i["name"] for i in stored["custom_items"]] == ["Zurich airport transfer"]


class TestBookings:

    def _book(self, client, package_id, **overrides):
        payload = {
            "package_id": package_id,
            "customer_name": "Lena Fischer",
            "customer_email": "lena@example.com",
            "number_of_people": 3,
            "travel_agent_id": "agent-1",
        }
        payload.update(overrides)
        response = client.post(f"{API}/bookings", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    def test_create_booking_defaults(self, client, make_package):
        package = make_package(price_adult=100.0)

        booking = self._book(client, package["id"])

        assert re.fullmatch(r"TD-[A-Z0-9]{8}", booking["booking_reference"])
        assert booking["total_amount"] == 300.0
        assert booking["currency"] == "USD"
        assert booking["status"] == "PENDING"
        assert booking["payment_status"] == "PENDING"

    def test_references_are_unique(self, client, make_package):
        package = make_package()

        references = {self._book(client, package["id"])["booking_reference"] for _ in range(5)}

        assert len(references) == 5

    def test_unknown_package(self, client):
        response = client.post(f"{API}/bookings", json={
            "package_id": 4040, "customer_name": "X", "customer_email": "x@example.com",
        })

        assert response.status_code == 404

    def test_get_includes_package_summary(self, client, make_package):
        package = make_package(title="Canyon Swing")
        booking = self._book(client, package["id"])

        fetched = client.get(f"{API}/bookings/{booking['id']}").json()

        assert fetched["package"] == {"id": package["id"], "title": "Canyon Swing"}

    def test_list_filters(self, client, make_package):
        package = make_package()
        self._book(client, package["id"], customer_email="a@example.com")
        self._book(client, package["id"], customer_email="b@example.com")

        only_a = client.get(f"{API}/bookings", params={"customer_email": "a@example.com"}).json()
        paged = client.get(f"{API}/bookings", params={"limit": 1, "offset": 1}).json()

        assert [b["customer_email"] for b in only_a] == ["a@example.com"]
        assert len(paged) == 1

    def test_lifecycle(self, client, make_package):
        package = make_package()
        booking = self._book(client, package["id"])

        confirmed = client.post(f"{API}/bookings/{booking['id']}/confirm").json()
        completed = client.post(f"{API}/bookings/{booking['id']}/complete").json()

        assert confirmed["status"] == "CONFIRMED"
        assert completed["status"] == "COMPLETED"

    def test_cancel_records_reason(self, client, make_package):
        package = make_package()
        booking = self._book(client, package["id"])

        cancelled = client.post(f"{API}/bookings/{booking['id']}/cancel", json={"reason": "Flight cancelled"}).json()

        assert cancelled["status"] == "CANCELLED"
        assert cancelled["notes"] == "Cancelled: Flight cancelled"

    def test_cancel_without_reason(self, client, make_package):
        package = make_package()
        booking = self._book(client, package["id"])

        cancelled = client.post(f"{API}/bookings/{booking['id']}/cancel").json()

        assert cancelled["notes"] == "Booking cancelled"

    def test_update_rejects_unknown_payment_status(self, client, make_package):
        package = make_package()
        booking = self._book(client, package["id"])

        response = client.patch(f"{API}/bookings/{booking['id']}", json={"payment_status": "MAYBE"})

        assert response.status_code == 422

    def test_bookings_refresh_package_analytics(self, client, make_package):
        package = make_package(price_adult=100.0)
        kept = self._book(client, package["id"], number_of_people=2)
        dropped = self._book(client, package["id"], number_of_people=1)
        client.post(f"{API}/bookings/{dropped['id']}/cancel")

        analytics = client.get(f"{API}/analytics/packages/{package['id']}").json()

        assert analytics["total_bookings"] == 1
        assert analytics["total_revenue"] == kept["total_amount"]
        # no customer ratings yet, the operator's rating stays
        assert client.get(f"{API}/packages/{package['id']}").json()["rating"] == 4.5


class TestBookingRequests:

    def _request(self, client, itinerary):
        response = client.post(f"{API}/booking-requests", json={
            "itinerary_id": itinerary["id"],
            "package_id": itinerary["package"]["id"],
            "quantity": 2,
            "requested_start": "2030-06-01",
        })
        assert response.status_code == 201, response.text
        return response.json()

    def test_create_links_itinerary_line(self, client, itinerary, operator):
        request = self._request(client, itinerary)

        assert request["status"] == "PENDING"
        assert request["agent_id"] == "agent-1"
        assert request["operator_id"] == operator["id"]

        line = client.get(f"{API}/itineraries/{itinerary['id']}").json()["packages"][0]
        assert line["booking_request_id"] == request["id"]

    def test_list_filters(self, client, itinerary, operator):
        request = self._request(client, itinerary)

        by_operator = client.get(f"{API}/booking-requests", params={"operator_id": operator["id"]}).json()
        confirmed = client.get(f"{API}/booking-requests", params={"status": "CONFIRMED"}).json()

        assert [r["id"] for r in by_operator] == [request["id"]]
        assert confirmed == []

    def test_confirm_opens_commission(self, client, itinerary):
        request = self._request(client, itinerary)

        response = client.post(f"{API}/booking-requests/{request['id']}/respond",
                               json={"status": "CONFIRMED", "message": "See you there"})

        assert response.status_code == 200
        answered = response.json()
        assert answered["status"] == "CONFIRMED"
        assert answered["confirmed_price"] == 200.0
        assert answered["response_message"] == "See you there"

        commissions = client.get(f"{API}/commissions", params={"agent_id": "agent-1"}).json()
        assert len(commissions) == 1
        assert commissions[0]["amount"] == 20.0
        assert commissions[0]["percentage"] == 10.0
        assert commissions[0]["status"] == "PENDING"

        line = client.get(f"{API}/itineraries/{itinerary['id']}").json()["packages"][0]
        assert line["status"] == "CONFIRMED"

    def test_confirm_with_explicit_price(self, client, itinerary):
        request = self._request(client, itinerary)

        client.post(f"{API}/booking-requests/{request['id']}/respond",
                    json={"status": "CONFIRMED", "confirmed_price": 450.0})

        commission = client.get(f"{API}/commissions", params={"agent_id": "agent-1"}).json()[0]
        assert commission["amount"] == 45.0

    def test_decline_has_no_commission(self, client, itinerary):
        request = self._request(client, itinerary)

        answered = client.post(f"{API}/booking-requests/{request['id']}/respond",
                               json={"status": "DECLINED", "message": "Fully booked"}).json()

        assert answered["status"] == "DECLINED"
        assert client.get(f"{API}/commissions", params={"agent_id": "agent-1"}).json() == []
        line = client.get(f"{API}/itineraries/{itinerary['id']}").json()["packages"][0]
        assert line["status"] == "DECLINED"

    def test_second_response_conflicts(self, client, itinerary):
        request = self._request(client, itinerary)
        client.post(f"{API}/booking-requests/{request['id']}/respond", json={"status": "DECLINED"})

        response = client.post(f"{API}/booking-requests/{request['id']}/respond", json={"status": "CONFIRMED"})

        assert response.status_code == 409
        assert response.json()["error"] == "Booking request already declined"

    def test_respond_rejects_other_statuses(self, client, itinerary):
        request = self._request(client, itinerary)

        response = client.post(f"{API}/booking-requests/{request['id']}/respond", json={"status": "PENDING"})

        assert response.status_code == 422


class TestCommissions:

    def test_mark_paid(self, client, itinerary):
        request = client.post(f"{API}/booking-requests", json={
            "itinerary_id": itinerary["id"], "package_id": itinerary["package"]["id"],
        }).json()
        client.post(f"{API}/booking-requests/{request['id']}/respond", json={"status": "CONFIRMED"})
        commission = client.get(f"{API}/commissions", params={"agent_id": "agent-1"}).json()[0]

        paid = client.patch(f"{API}/commissions/{commission['id']}",
                            json={"status": "PAID", "notes": "Bank transfer"}).json()

        assert paid["status"] == "PAID"
        assert paid["paid_at"] is not None
        assert paid["notes"] == "Bank transfer"
        assert client.get(f"{API}/commissions", params={"agent_id": "agent-1", "status": "PENDING"}).json() == []

    def test_unknown_status(self, client):
        response = client.patch(f"{API}/commissions/1", json={"status": "LOST"})

        assert response.status_code == 422
