"""
Package API tests: CRUD, listing, marketplace browse and the editors
"""

import pytest

API = "/api/v1"


class TestPackageCrud:

    def test_create_defaults_to_draft(self, client, operator):
        response = client.post(f"{API}/packages", json={
            "tour_operator_id": operator["id"],
            "title": "Lake Cruise",
            "type": "ACTIVITY",
            "price_adult": 40,
            "variants": [
                {"variant_name": "Morning", "price_adult": 40},
                {"variant_name": "Sunset", "price_adult": 55, "inclusions": ["Drink"]},
            ],
        })

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "DRAFT"
        assert data["operator_name"] == "Alpine Trails"
        assert data["pricing"] == {"adult": 40.0, "child": 0.0, "currency": "USD"}
        assert [v["variant_name"] for v in data["variants"]] == ["Morning", "Sunset"]
        assert [v["order_index"] for v in data["variants"]] == [0, 1]
        assert data["variants"][1]["inclusions"] == ["Drink"]

    def test_create_requires_existing_operator(self, client):
        response = client.post(f"{API}/packages", json={
            "tour_operator_id": 999, "title": "Ghost", "type": "ACTIVITY",
        })

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Tour operator not found"}

    def test_create_rejects_unknown_type(self, client, operator):
        response = client.post(f"{API}/packages", json={
            "tour_operator_id": operator["id"], "title": "Odd", "type": "SPACEFLIGHT",
        })

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "Invalid type" in body["error"]

    def test_create_rejects_inverted_group_size(self, client, operator):
        response = client.post(f"{API}/packages", json={
            "tour_operator_id": operator["id"], "title": "Odd", "type": "ACTIVITY",
            "group_size_min": 8, "group_size_max": 2,
        })

        assert response.status_code == 422

    def test_missing_title_uses_result_shape(self, client, operator):
        response = client.post(f"{API}/packages", json={
            "tour_operator_id": operator["id"], "type": "ACTIVITY",
        })

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "title" in body["error"]

    def test_get_update_delete(self, client, make_package):
        package = make_package()

        response = client.get(f"{API}/packages/{package['id']}")
        assert response.status_code == 200
        assert response.json()["title"] == "Glacier Hike"

        response = client.patch(f"{API}/packages/{package['id']}", json={
            "price_adult": 125.0, "tags": ["ice", "guided"],
        })
        assert response.status_code == 200
        updated = response.json()
        assert updated["price_adult"] == 125.0
        assert updated["tags"] == ["ice", "guided"]
        assert updated["title"] == "Glacier Hike"

        response = client.delete(f"{API}/packages/{package['id']}")
        assert response.json() == {"success": True}

        response = client.get(f"{API}/packages/{package['id']}")
        assert response.status_code == 404
        assert response.json()["error"] == "Package not found"

    def test_update_rejects_blank_title(self, client, make_package):
        package = make_package()

        response = client.patch(f"{API}/packages/{package['id']}", json={"title": "  "})

        assert response.status_code == 422

    def test_update_replaces_variants(self, client, make_package):
        package = make_package(variants=[{"variant_name": "Old"}])

        response = client.patch(f"{API}/packages/{package['id']}", json={
            "variants": [{"variant_name": "New A"}, {"variant_name": "New B"}],
        })

        assert [v["variant_name"] for v in response.json()["variants"]] == ["New A", "New B"]


class TestPackageQueries:

    def test_list_filters_and_paginates(self, client, make_package):
        make_package(title="Cheap Walk", price_adult=20)
        make_package(title="Mid Tour", price_adult=80)
        make_package(title="Luxury Heli", price_adult=900, status="DRAFT")

        response = client.get(f"{API}/packages", params={
            "status": "ACTIVE", "sort_by": "price", "sort_order": "asc", "limit": 1,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["total_pages"] == 2
        assert body["has_next"] is True
        assert [p["title"] for p in body["data"]] == ["Cheap Walk"]

    def test_list_text_search_and_destination(self, client, make_package):
        make_package(title="Glacier Hike", destinations=["Interlaken"])
        make_package(title="Lisbon Food Walk", destinations=["Lisbon"], description="Tasting tour")

        by_text = client.get(f"{API}/packages", params={"q": "tasting"}).json()
        by_destination = client.get(f"{API}/packages", params={"destination": "interlaken"}).json()

        assert [p["title"] for p in by_text["data"]] == ["Lisbon Food Walk"]
        assert [p["title"] for p in by_destination["data"]] == ["Glacier Hike"]

    def test_stats(self, client, operator, make_package):
        make_package(price_adult=100, rating=4.0)
        make_package(price_adult=50, rating=3.0, status="DRAFT")

        stats = client.get(f"{API}/packages/stats", params={"tour_operator_id": operator["id"]}).json()

        assert stats == {
            "total_packages": 2,
            "active_packages": 1,
            "total_revenue": 150.0,
            "average_rating": 3.5,
        }

    def test_featured_and_search_only_active(self, client, make_package):
        make_package(title="Featured Active", is_featured=True)
        make_package(title="Featured Draft", is_featured=True, status="DRAFT")

        featured = client.get(f"{API}/packages/featured").json()
        found = client.get(f"{API}/packages/search", params={"q": "Featured"}).json()

        assert [p["title"] for p in featured] == ["Featured Active"]
        assert [p["title"] for p in found] == ["Featured Active"]

    def test_browse_orders_by_rating(self, client, make_package):
        make_package(title="Good", rating=4.0, tags=["adventure"])
        make_package(title="Best", rating=4.9, tags=["adventure"])
        make_package(title="Other", rating=5.0, tags=["culture"])

        browse = client.get(f"{API}/packages/browse", params={"trip_type": "adventure"}).json()

        assert [p["title"] for p in browse] == ["Best", "Good"]
        assert browse[0]["operator_name"] == "Alpine Trails"


class TestPackageEditors:

    def test_variant_editor_flow(self, client, make_package):
        package = make_package(variants=[{"variant_name": "Standard", "price_adult": 100}])
        base = f"{API}/packages/{package['id']}/variants"

        variants = client.post(base).json()
        assert len(variants) == 2

        blank_id = variants[1]["id"]
        variants = client.patch(f"{base}/{blank_id}", json={"field": "variant_name", "value": "Private"}).json()
        assert [v["variant_name"] for v in variants] == ["Standard", "Private"]

        private_id = variants[1]["id"]
        variants = client.post(f"{base}/{private_id}/move", json={"direction": "up"}).json()
        assert [v["variant_name"] for v in variants] == ["Private", "Standard"]

        private_id = variants[0]["id"]
        variants = client.post(f"{base}/{private_id}/duplicate").json()
        assert [v["variant_name"] for v in variants] == ["Private", "Standard", "Private (Copy)"]

        copy_id = variants[2]["id"]
        variants = client.delete(f"{base}/{copy_id}").json()
        assert len(variants) == 2

    def test_variant_inclusions(self, client, make_package):
        package = make_package(variants=[{"variant_name": "Standard"}])
        base = f"{API}/packages/{package['id']}/variants"
        variant_id = client.get(base).json()[0]["id"]

        variants = client.post(f"{base}/{variant_id}/inclusions", json={"value": "Guide"}).json()
        variant_id = variants[0]["id"]
        variants = client.put(f"{base}/{variant_id}/inclusions/0", json={"value": "Mountain guide"}).json()
        assert variants[0]["inclusions"] == ["Mountain guide"]

        variant_id = variants[0]["id"]
        variants = client.delete(f"{base}/{variant_id}/inclusions/0").json()
        assert variants[0]["inclusions"] == []

    def test_variant_unknown_field(self, client, make_package):
        package = make_package(variants=[{"variant_name": "Standard"}])
        base = f"{API}/packages/{package['id']}/variants"
        variant_id = client.get(base).json()[0]["id"]

        response = client.patch(f"{base}/{variant_id}", json={"field": "package_id", "value": 3})

        assert response.status_code == 422

    @pytest.mark.parametrize("field,value", [
        ("min_guests", -5),
        ("price_adult", -99),
        ("price_child", "not a price"),
    ])
    def test_variant_field_edit_is_validated(self, client, make_package, field, value):
        package = make_package(variants=[{"variant_name": "Standard", "price_adult": 40.0}])
        base = f"{API}/packages/{package['id']}/variants"
        variant_id = client.get(base).json()[0]["id"]

        response = client.patch(f"{base}/{variant_id}", json={"field": field, "value": value})

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert field in response.json()["error"]
        stored = client.get(base).json()[0]
        assert stored["min_guests"] == 1
        assert stored["price_adult"] == 40.0

    def test_variant_field_edit_coerces_numbers(self, client, make_package):
        package = make_package(variants=[{"variant_name": "Standard"}])
        base = f"{API}/packages/{package['id']}/variants"
        variant_id = client.get(base).json()[0]["id"]

        variants = client.patch(f"{base}/{variant_id}", json={"field": "max_guests", "value": "8"}).json()

        assert variants[0]["max_guests"] == 8

    def test_faq_editor(self, client, make_package):
        package = make_package()
        base = f"{API}/packages/{package['id']}/faq"

        client.post(base)
        faqs = client.post(base).json()
        first, second = faqs[0]["id"], faqs[1]["id"]

        faqs = client.patch(f"{base}/{first}", json={"field": "question", "value": "Is lunch included?"}).json()
        faqs = client.post(f"{base}/{first}/move", json={"direction": "down"}).json()

        assert [f["id"] for f in faqs] == [second, first]
        assert [f["order"] for f in faqs] == [0, 1]
        assert faqs[1]["question"] == "Is lunch included?"

        faqs = client.delete(f"{base}/{second}").json()
        assert [f["id"] for f in faqs] == [first]
        assert client.get(base).json() == faqs

    def test_faq_field_edit_is_validated(self, client, make_package):
        package = make_package()
        base = f"{API}/packages/{package['id']}/faq"
        faq_id = client.post(base).json()[0]["id"]

        response = client.patch(f"{base}/{faq_id}", json={"field": "answer", "value": {"text": "Yes"}})

        assert response.status_code == 422
        assert "answer" in response.json()["error"]
        assert client.get(base).json()[0]["answer"] == ""

    def test_accessibility_editor(self, client, make_package):
        package = make_package()
        base = f"{API}/packages/{package['id']}/accessibility"

        items = client.post(f"{base}/toggle", json={"item": "Wheelchair accessible"}).json()
        assert items == ["Wheelchair accessible"]

        items = client.post(base, json={"item": "  Infant seats  "}).json()
        assert items == ["Wheelchair accessible", "Infant seats"]

        items = client.post(f"{base}/remove", json={"item": "Wheelchair accessible"}).json()
        assert items == ["Infant seats"]

        items = client.post(f"{base}/toggle", json={"item": "Infant seats"}).json()
        assert items == []
