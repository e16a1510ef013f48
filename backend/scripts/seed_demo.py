"""
Seed the configured database with demo data: tour operators, packages with
variants, agent leads and marketplace leads.
Run from backend/: python scripts/seed_demo.py [--reset]
"""

import argparse
import os
import sys
from datetime import date, timedelta

# Add backend directory to path for tripdesk imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tripdesk.db.database import SessionLocal, engine
from tripdesk.db.models import Base
from tripdesk.services.lead_service import LeadService
from tripdesk.services.operator_service import OperatorService
from tripdesk.services.package_service import PackageService
from tripdesk.services.recommender import PackageRecommender

OPERATORS = [
    {"user_id": "op-alpine", "company_name": "Alpine Trails", "is_verified": True,
     "contact_email": "hello@alpinetrails.example", "commission_rate": 12.0},
    {"user_id": "op-coastal", "company_name": "Coastal Escapes", "is_verified": True,
     "contact_email": "team@coastal.example"},
    {"user_id": "op-metro", "company_name": "Metro City Tours",
     "contact_email": "info@metrotours.example"},
]

PACKAGES = [
    # (operator index, data)
    (0, {
        "title": "Swiss Alps Glacier Hike", "type": "ACTIVITY", "status": "ACTIVE",
        "price_adult": 180.0, "price_child": 120.0, "destinations": ["Interlaken", "Switzerland"],
        "duration_days": 1, "duration_hours": 7, "difficulty": "CHALLENGING",
        "tags": ["hiking", "glacier"], "recommended_for_trip_types": ["ADVENTURE"],
        "is_featured": True, "rating": 4.7, "review_count": 64,
        "inclusions": ["Mountain guide", "Crampons"], "exclusions": ["Lunch"],
        "variants": [
            {"variant_name": "Standard group", "price_adult": 180.0, "price_child": 120.0},
            {"variant_name": "Private guide", "price_adult": 420.0, "price_child": 300.0, "max_guests": 4},
        ],
    }),
    (0, {
        "title": "Jungfrau Rail & Summit", "type": "MULTI_CITY_PACKAGE", "status": "ACTIVE",
        "price_adult": 950.0, "price_child": 600.0, "destinations": ["Interlaken", "Lucerne", "Switzerland"],
        "duration_days": 4, "duration_hours": 0, "difficulty": "EASY",
        "tags": ["rail", "scenic"], "recommended_for_trip_types": ["CULTURAL", "LUXURY"],
        "rating": 4.4, "review_count": 31,
    }),
    (1, {
        "title": "Algarve Sea Kayak Day", "type": "ACTIVITY", "status": "ACTIVE",
        "price_adult": 75.0, "price_child": 50.0, "destinations": ["Lagos", "Portugal"],
        "duration_days": 1, "duration_hours": 4, "difficulty": "MODERATE",
        "tags": ["kayak", "caves"], "recommended_for_trip_types": ["BEACH", "ADVENTURE"],
        "rating": 4.8, "review_count": 112, "is_featured": True,
    }),
    (1, {
        "title": "Faro Airport Transfer", "type": "TRANSFERS", "status": "ACTIVE",
        "price_adult": 35.0, "destinations": ["Faro", "Lagos", "Portugal"],
        "duration_days": 1, "duration_hours": 1, "recommended_for_trip_types": ["BEACH", "BUDGET"],
        "rating": 4.1, "review_count": 20,
    }),
    (2, {
        "title": "Lisbon Old Town Walking Tour", "type": "ACTIVITY", "status": "ACTIVE",
        "price_adult": 25.0, "destinations": ["Lisbon", "Portugal"],
        "duration_days": 1, "duration_hours": 3, "recommended_for_trip_types": ["CITY_BREAK", "CULTURAL"],
        "rating": 3.9, "review_count": 8,
    }),
    (2, {
        "title": "Porto Wine Cellars (draft)", "type": "ACTIVITY",
        "price_adult": 60.0, "destinations": ["Porto", "Portugal"],
        "duration_days": 1, "duration_hours": 5, "recommended_for_trip_types": ["LUXURY"],
    }),
]

LEADS = [
    {"agent_id": "agent-1", "customer_name": "Maya Keller", "customer_email": "maya@example.com",
     "destination": "Interlaken", "budget": 3000.0, "trip_type": "ADVENTURE", "travelers": 2,
     "duration": 4, "preferences": ["hiking"], "source": "DIRECT"},
    {"agent_id": "agent-1", "customer_name": "Tom Reyes", "customer_email": "tom@example.com",
     "destination": "Portugal", "budget": 1200.0, "trip_type": "BEACH", "travelers": 3,
     "duration": 5, "source": "REFERRAL", "status": "CONTACTED"},
]

MARKETPLACE_LEADS = [
    {"customer_name": "Ana Silva", "customer_email": "ana@example.com", "destination": "Lisbon",
     "trip_type": "CITY_BREAK", "budget": 900.0, "duration": 3, "travelers": 2,
     "lead_price": 15.0, "commission_rate": 8.0},
    {"customer_name": "Leo Brandt", "customer_email": "leo@example.com", "destination": "Lucerne",
     "trip_type": "LUXURY", "budget": 8000.0, "duration": 6, "travelers": 2,
     "lead_price": 40.0, "commission_rate": 12.0},
]


def main():
    parser = argparse.ArgumentParser(description="Seed TripDesk demo data")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables first")
    args = parser.parse_args()

    print(f"Database: {engine.url}")
    if args.reset:
        Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    print("Tables ready")

    session = SessionLocal()
    try:
        operators = [OperatorService(session).ensure_profile(op["user_id"], op["company_name"])
                     for op in OPERATORS]
        for op, profile in zip(OPERATORS, operators):
            OperatorService(session).update(profile["id"], op)
        print(f"Operators: {len(operators)}")

        packages = PackageService(session)
        for operator_index, data in PACKAGES:
            packages.create_package({**data, "tour_operator_id": operators[operator_index]["id"]})
        print(f"Packages: {len(PACKAGES)}")

        leads = LeadService(session)
        start = date.today() + timedelta(days=30)
        created = []
        for data in LEADS:
            created.append(leads.create_lead({
                **data,
                "preferred_start_date": start,
                "preferred_end_date": start + timedelta(days=data["duration"] - 1),
            }))
        for data in MARKETPLACE_LEADS:
            leads.create_marketplace_lead(data)
        print(f"Leads: {len(created)} | Marketplace leads: {len(MARKETPLACE_LEADS)}")

        recommender = PackageRecommender(session)
        for lead in created:
            recs = recommender.generate(lead["id"])
            print(f"  lead {lead['id']} ({lead['destination']}): {len(recs)} recommendations")
    finally:
        session.close()

    print("Seed complete")


if __name__ == "__main__":
    main()
