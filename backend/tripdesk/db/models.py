"""
Database models -- SQLAlchemy ORM definitions.
Array-valued attributes (destinations, inclusions, tags, ...) live in JSON
columns so the schema works unchanged on PostgreSQL and SQLite.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, JSON, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Enumerations (stored as upper-case strings)
PACKAGE_TYPES = ("ACTIVITY", "TRANSFERS", "MULTI_CITY_PACKAGE",
                 "MULTI_CITY_PACKAGE_WITH_HOTEL", "FIXED_DEPARTURE_WITH_FLIGHT")
PACKAGE_STATUSES = ("DRAFT", "ACTIVE", "INACTIVE", "SUSPENDED", "ARCHIVED")
DIFFICULTY_LEVELS = ("EASY", "MODERATE", "CHALLENGING", "DIFFICULT")
TRIP_TYPES = ("ADVENTURE", "CULTURAL", "BEACH", "CITY_BREAK", "LUXURY", "BUDGET")
LEAD_STATUSES = ("NEW", "CONTACTED", "QUOTED", "BOOKED", "COMPLETED", "CANCELLED")
LEAD_SOURCES = ("MARKETPLACE", "REFERRAL", "DIRECT", "SOCIAL_MEDIA")
MARKETPLACE_LEAD_STATUSES = ("AVAILABLE", "PURCHASED", "EXPIRED")
ITINERARY_STATUSES = ("DRAFT", "SENT", "REVISED", "APPROVED", "BOOKED", "CANCELLED")
ACTIVITY_TYPES = ("PACKAGE", "CUSTOM", "TRANSFER", "MEAL", "ACCOMMODATION")
CUSTOM_ITEM_TYPES = ("FLIGHT", "HOTEL", "TRANSFER", "ACTIVITY", "MEAL", "OTHER")
SESSION_STEPS = ("PACKAGE_SELECTION", "DAY_PLANNING", "DETAILS", "REVIEW")
BOOKING_REQUEST_STATUSES = ("PENDING", "CONFIRMED", "DECLINED", "CANCELLED")
COMMISSION_STATUSES = ("PENDING", "APPROVED", "PAID")
BOOKING_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", "REFUNDED")
PAYMENT_STATUSES = ("PENDING", "PAID", "REFUNDED", "FAILED")


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# ============================================================================
# OPERATORS & PACKAGES
# ============================================================================

class TourOperator(TimestampMixin, Base):
    """Company that publishes packages. One profile per user account."""
    __tablename__ = "tour_operators"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    company_name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    rating = Column(Float, default=0.0)
    review_count = Column(Integer, default=0)
    is_verified = Column(Boolean, default=False, index=True)
    commission_rate = Column(Float, default=10.0)

    packages = relationship("Package", back_populates="tour_operator")


class Package(TimestampMixin, Base):
    """
    Sellable travel offering (activity, transfer, multi-city tour).
    Pricing is per adult / per child in `currency`.
    """
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    tour_operator_id = Column(Integer, ForeignKey("tour_operators.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, default="")
    type = Column(String(40), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="DRAFT", index=True)

    price_adult = Column(Float, default=0.0, index=True)
    price_child = Column(Float, default=0.0)
    currency = Column(String(3), default="USD")

    destinations = Column(JSON, default=list)
    duration_days = Column(Integer, default=1)
    duration_hours = Column(Integer, default=8)
    group_size_min = Column(Integer, default=1)
    group_size_max = Column(Integer, default=10)
    difficulty = Column(String(20), default="EASY")

    tags = Column(JSON, default=list)
    inclusions = Column(JSON, default=list)
    exclusions = Column(JSON, default=list)
    images = Column(JSON, default=list)
    recommended_for_trip_types = Column(JSON, default=list)

    is_featured = Column(Boolean, default=False, index=True)
    rating = Column(Float, default=0.0, index=True)
    review_count = Column(Integer, default=0)

    # Activity details and policies
    meeting_point = Column(Text)
    languages_supported = Column(JSON, default=list)
    accessibility_info = Column(JSON, default=list)
    important_info = Column(Text)
    faq = Column(JSON, default=list)

    tour_operator = relationship("TourOperator", back_populates="packages")
    variants = relationship(
        "PackageVariant",
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="PackageVariant.order_index",
    )


class PackageVariant(TimestampMixin, Base):
    """Priced sub-option of a package (e.g. "General Admission" vs "VIP")."""
    __tablename__ = "package_variants"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_name = Column(String(255), nullable=False, default="")
    description = Column(Text)
    inclusions = Column(JSON, default=list)
    exclusions = Column(JSON, default=list)
    price_adult = Column(Float, default=0.0)
    price_child = Column(Float, default=0.0)
    price_infant = Column(Float, default=0.0)
    min_guests = Column(Integer, default=1)
    max_guests = Column(Integer)
    is_active = Column(Boolean, default=True)
    order_index = Column(Integer, default=0)

    package = relationship("Package", back_populates="variants")


# ============================================================================
# LEADS
# ============================================================================

class Lead(TimestampMixin, Base):
    """A prospective customer's travel request awaiting agent action."""
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50))
    destination = Column(String(255), nullable=False, index=True)
    budget = Column(Float, default=0.0)
    trip_type = Column(String(20), nullable=False, index=True)
    travelers = Column(Integer, default=1)
    duration = Column(Integer, default=1)
    preferred_start_date = Column(Date)
    preferred_end_date = Column(Date)
    preferences = Column(JSON, default=list)
    status = Column(String(20), nullable=False, default="NEW", index=True)
    source = Column(String(20), nullable=False, default="DIRECT")
    notes = Column(Text)


class MarketplaceLead(TimestampMixin, Base):
    """Lead offered for sale to agents."""
    __tablename__ = "leads_marketplace"

    id = Column(Integer, primary_key=True, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50))
    destination = Column(String(255), nullable=False, index=True)
    trip_type = Column(String(20), nullable=False, index=True)
    budget = Column(Float, default=0.0, index=True)
    duration = Column(Integer, default=1)
    travelers = Column(Integer, default=1)
    preferred_start_date = Column(Date)
    preferred_end_date = Column(Date)
    preferences = Column(JSON, default=list)
    lead_price = Column(Float, default=0.0)
    commission_rate = Column(Float, default=10.0)
    status = Column(String(20), nullable=False, default="AVAILABLE", index=True)


class PurchasedLead(Base):
    __tablename__ = "purchased_leads"

    id = Column(Integer, primary_key=True, index=True)
    marketplace_lead_id = Column(Integer, ForeignKey("leads_marketplace.id"), nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), index=True)
    purchase_price = Column(Float, default=0.0)
    commission_rate = Column(Float, default=0.0)
    status = Column(String(20), nullable=False, default="PURCHASED")
    purchase_date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    marketplace_lead = relationship("MarketplaceLead")


# ============================================================================
# ITINERARIES
# ============================================================================

class Itinerary(TimestampMixin, Base):
    """Agent-assembled day-by-day travel plan for a lead."""
    __tablename__ = "itineraries"

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default="DRAFT", index=True)
    start_date = Column(Date)
    end_date = Column(Date)
    duration_days = Column(Integer, default=0)
    total_cost = Column(Float, default=0.0)
    agent_commission = Column(Float, default=0.0)
    customer_price = Column(Float, default=0.0)
    notes = Column(Text)
    client_feedback = Column(Text)
    sent_at = Column(DateTime)
    sent_via_email = Column(Boolean, default=False)
    email_sent_at = Column(DateTime)
    sent_via_whatsapp = Column(Boolean, default=False)
    whatsapp_sent_at = Column(DateTime)

    days = relationship(
        "ItineraryDay",
        back_populates="itinerary",
        cascade="all, delete-orphan",
        order_by="ItineraryDay.day_number",
    )
    packages = relationship("ItineraryPackage", back_populates="itinerary", cascade="all, delete-orphan")
    custom_items = relationship("CustomItineraryItem", back_populates="itinerary", cascade="all, delete-orphan")


class ItineraryDay(Base):
    __tablename__ = "itinerary_days"

    id = Column(Integer, primary_key=True, index=True)
    itinerary_id = Column(Integer, ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    day_number = Column(Integer, nullable=False)
    date = Column(Date)
    location = Column(String(255))
    accommodation = Column(String(255))
    meals = Column(JSON, default=list)
    transportation = Column(String(255))
    notes = Column(Text)

    itinerary = relationship("Itinerary", back_populates="days")
    activities = relationship(
        "ItineraryDayActivity",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="ItineraryDayActivity.order_index",
    )


class ItineraryDayActivity(Base):
    __tablename__ = "itinerary_day_activities"

    id = Column(Integer, primary_key=True, index=True)
    itinerary_day_id = Column(Integer, ForeignKey("itinerary_days.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="SET NULL"))
    activity_name = Column(String(255), nullable=False)
    activity_type = Column(String(20), nullable=False, default="CUSTOM")
    time_slot = Column(String(50), default="")
    duration_hours = Column(Float, default=0.0)
    cost = Column(Float, default=0.0)
    location = Column(String(255), default="")
    notes = Column(Text)
    order_index = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    day = relationship("ItineraryDay", back_populates="activities")


class ItineraryPackage(Base):
    __tablename__ = "itinerary_packages"

    id = Column(Integer, primary_key=True, index=True)
    itinerary_id = Column(Integer, ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    package_name = Column(String(255), nullable=False)
    operator_id = Column(Integer, ForeignKey("tour_operators.id"))
    operator_name = Column(String(255))
    quantity = Column(Integer, default=1)
    unit_price = Column(Float, default=0.0)
    total_price = Column(Float, default=0.0)
    status = Column(String(20), nullable=False, default="PENDING")
    booking_request_id = Column(Integer, ForeignKey("booking_requests.id"))
    notes = Column(Text)

    itinerary = relationship("Itinerary", back_populates="packages")


class CustomItineraryItem(Base):
    __tablename__ = "custom_itinerary_items"

    id = Column(Integer, primary_key=True, index=True)
    itinerary_id = Column(Integer, ForeignKey("itineraries.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, default="")
    type = Column(String(20), nullable=False, default="OTHER")
    cost = Column(Float, default=0.0)
    supplier = Column(String(255))
    notes = Column(Text)

    itinerary = relationship("Itinerary", back_populates="custom_items")


class ItineraryCreationSession(TimestampMixin, Base):
    """Working state of the multi-step itinerary builder."""
    __tablename__ = "itinerary_creation_sessions"

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id"), nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    status = Column(String(30), nullable=False, default="PACKAGE_SELECTION")
    selected_packages = Column(JSON, default=list)
    day_assignments = Column(JSON, default=list)
    itinerary_id = Column(Integer, ForeignKey("itineraries.id"))


class PackageRecommendation(Base):
    __tablename__ = "package_recommendations"
    __table_args__ = (UniqueConstraint("lead_id", "package_id", name="uq_recommendation_lead_package"),)

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), nullable=False, index=True)
    recommendation_score = Column(Float, nullable=False, index=True)
    reason = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ============================================================================
# BOOKINGS & COMMISSIONS
# ============================================================================

class BookingRequest(TimestampMixin, Base):
    """Agent's request to an operator to reserve a package on an itinerary."""
    __tablename__ = "booking_requests"

    id = Column(Integer, primary_key=True, index=True)
    itinerary_id = Column(Integer, ForeignKey("itineraries.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    operator_id = Column(Integer, ForeignKey("tour_operators.id"), nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    quantity = Column(Integer, default=1)
    requested_start = Column(Date)
    requested_end = Column(Date)
    special_requests = Column(Text)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    response_message = Column(Text)
    confirmed_price = Column(Float)


class Commission(Base):
    __tablename__ = "commissions"

    id = Column(Integer, primary_key=True, index=True)
    agent_id = Column(String(64), nullable=False, index=True)
    itinerary_id = Column(Integer, ForeignKey("itineraries.id"), index=True)
    booking_request_id = Column(Integer, ForeignKey("booking_requests.id"), index=True)
    amount = Column(Float, nullable=False, default=0.0)
    percentage = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    paid_at = Column(DateTime)
    notes = Column(Text)


class Booking(TimestampMixin, Base):
    """Customer booking of a package."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    booking_reference = Column(String(20), unique=True, nullable=False, index=True)
    customer_id = Column(String(64), index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(50))
    travel_agent_id = Column(String(64), index=True)
    number_of_people = Column(Integer, default=1)
    total_amount = Column(Float, default=0.0)
    currency = Column(String(3), default="USD")
    booking_date = Column(Date)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    payment_status = Column(String(20), nullable=False, default="PENDING")
    payment_method = Column(String(50))
    special_requests = Column(Text)
    notes = Column(Text)

    package = relationship("Package")


# ============================================================================
# ANALYTICS
# ============================================================================

class PackageView(Base):
    __tablename__ = "package_views"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64))
    ip_address = Column(String(64))
    user_agent = Column(Text)
    session_id = Column(String(128))
    referrer = Column(Text)
    viewed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class PackageRating(TimestampMixin, Base):
    __tablename__ = "package_ratings"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(String(64))
    booking_id = Column(Integer, ForeignKey("bookings.id"))
    rating = Column(Integer, nullable=False)
    review_text = Column(Text)
    is_verified = Column(Boolean, default=False)


class PackageAnalytics(Base):
    """Denormalised counters per package, refreshed from views/bookings/ratings."""
    __tablename__ = "package_analytics"

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    total_views = Column(Integer, default=0)
    total_bookings = Column(Integer, default=0)
    total_revenue = Column(Float, default=0.0)
    average_rating = Column(Float, default=0.0)
    total_ratings = Column(Integer, default=0)
    last_viewed_at = Column(DateTime)
    last_booking_at = Column(DateTime)
    last_updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
