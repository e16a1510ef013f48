"""
Lead Service
Agent leads plus the leads marketplace, where agents buy customer leads.
A purchase also creates the agent's own Lead so the itinerary builder and
recommendations can work from it.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
import logging

from tripdesk.core.exceptions import ConflictError, ValidationError
from tripdesk.db.models import (
    LEAD_SOURCES, LEAD_STATUSES, TRIP_TYPES, Lead, MarketplaceLead, PurchasedLead,
)
from tripdesk.db.repositories import check_choice, commit_or_raise, get_or_404
from tripdesk.db.serializers import model_to_dict

logger = logging.getLogger(__name__)

LEAD_FIELDS = {
    "agent_id", "customer_name", "customer_email", "customer_phone", "destination",
    "budget", "trip_type", "travelers", "duration", "preferred_start_date",
    "preferred_end_date", "preferences", "status", "source", "notes",
}


class LeadService:

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Agent leads
    # ------------------------------------------------------------------
    def create_lead(self, data: Dict[str, Any]) -> Dict[str, Any]:
        check_choice(data.get("trip_type"), TRIP_TYPES, "trip_type")
        check_choice(data.get("status"), LEAD_STATUSES, "status")
        check_choice(data.get("source"), LEAD_SOURCES, "source")
        start, end = data.get("preferred_start_date"), data.get("preferred_end_date")
        if start and end and end < start:
            raise ValidationError("preferred_end_date is before preferred_start_date",
                                  {"field": "preferred_end_date", "value": str(end)})

        lead = Lead(**{k: v for k, v in data.items() if k in LEAD_FIELDS and v is not None})
        self.db.add(lead)
        commit_or_raise(self.db, "create lead")
        self.db.refresh(lead)
        logger.info(f"Created lead {lead.id} for agent {lead.agent_id} ({lead.destination})")
        return model_to_dict(lead)

    def get_leads(self, agent_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.db.query(Lead).filter(Lead.agent_id == agent_id)
        if status:
            query = query.filter(Lead.status == status)
        leads = query.order_by(Lead.created_at.desc(), Lead.id.desc()).all()
        return [model_to_dict(lead) for lead in leads]

    def get_lead(self, lead_id: int) -> Dict[str, Any]:
        return model_to_dict(get_or_404(self.db, Lead, lead_id, "Lead"))

    def update_lead_status(self, lead_id: int, status: str) -> Dict[str, Any]:
        check_choice(status, LEAD_STATUSES, "status")
        lead = get_or_404(self.db, Lead, lead_id, "Lead")
        lead.status = status
        commit_or_raise(self.db, "update lead status")
        self.db.refresh(lead)
        logger.info(f"Lead {lead_id} -> {status}")
        return model_to_dict(lead)

    # ------------------------------------------------------------------
    # Marketplace
    # ------------------------------------------------------------------
    def get_marketplace_leads(
        self,
        destination: Optional[str] = None,
        trip_type: Optional[str] = None,
        min_budget: Optional[float] = None,
        max_budget: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        query = self.db.query(MarketplaceLead).filter(MarketplaceLead.status == "AVAILABLE")
        if destination:
            query = query.filter(MarketplaceLead.destination.ilike(f"%{destination}%"))
        if trip_type:
            query = query.filter(MarketplaceLead.trip_type == trip_type)
        if min_budget is not None:
            query = query.filter(MarketplaceLead.budget >= min_budget)
        if max_budget is not None:
            query = query.filter(MarketplaceLead.budget <= max_budget)
        rows = query.order_by(MarketplaceLead.created_at.desc(), MarketplaceLead.id.desc()).all()
        return [model_to_dict(r) for r in rows]

    def create_marketplace_lead(self, data: Dict[str, Any]) -> Dict[str, Any]:
        check_choice(data.get("trip_type"), TRIP_TYPES, "trip_type")
        fields = {c.key for c in MarketplaceLead.__table__.columns} - {"id", "created_at", "updated_at"}
        lead = MarketplaceLead(**{k: v for k, v in data.items() if k in fields and v is not None})
        self.db.add(lead)
        commit_or_raise(self.db, "create marketplace lead")
        self.db.refresh(lead)
        return model_to_dict(lead)

    def purchase_lead(self, marketplace_lead_id: int, agent_id: str) -> Dict[str, Any]:
        offer = self.db.get(MarketplaceLead, marketplace_lead_id)
        if offer is None or offer.status != "AVAILABLE":
            raise ConflictError("Lead not found or no longer available",
                                {"marketplace_lead_id": marketplace_lead_id, "agent_id": agent_id})

        lead = Lead(
            agent_id=agent_id,
            customer_name=offer.customer_name,
            customer_email=offer.customer_email,
            customer_phone=offer.customer_phone,
            destination=offer.destination,
            budget=offer.budget,
            trip_type=offer.trip_type,
            travelers=offer.travelers,
            duration=offer.duration,
            preferred_start_date=offer.preferred_start_date,
            preferred_end_date=offer.preferred_end_date,
            preferences=list(offer.preferences or []),
            status="NEW",
            source="MARKETPLACE",
        )
        self.db.add(lead)
        self.db.flush()

        purchase = PurchasedLead(
            marketplace_lead_id=offer.id,
            agent_id=agent_id,
            lead_id=lead.id,
            purchase_price=offer.lead_price,
            commission_rate=offer.commission_rate,
            status="PURCHASED",
            purchase_date=datetime.utcnow(),
        )
        self.db.add(purchase)
        offer.status = "PURCHASED"

        commit_or_raise(self.db, "purchase lead")
        self.db.refresh(purchase)
        logger.info(f"Agent {agent_id} purchased marketplace lead {offer.id} -> lead {lead.id}")

        result = model_to_dict(purchase)
        result["lead"] = model_to_dict(lead)
        return result

    def get_purchased_leads(self, agent_id: str) -> List[Dict[str, Any]]:
        rows = self.db.query(PurchasedLead) \
            .filter(PurchasedLead.agent_id == agent_id) \
            .order_by(PurchasedLead.purchase_date.desc(), PurchasedLead.id.desc()) \
            .all()
        results = []
        for row in rows:
            item = model_to_dict(row)
            item["marketplace_lead"] = model_to_dict(row.marketplace_lead)
            results.append(item)
        return results
