from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.orm.collections import attribute_mapped_collection
from datetime import datetime
from .database import Base
import enum


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Quotes may only be created in one of these; later changes are plain assignment
CREATION_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.SENT)


class QuotePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FeeKind(str, enum.Enum):
    PROJECT = "project"  # design / scan, one per quote
    EXTRA = "extra"      # any number per quote


# Material cost per gram = cost per kg × 0.017. Fixed shop constant, not 1/1000.
COST_PER_GRAM_FACTOR = 0.017


# --- Catalog ---

class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    cost_per_kg = Column(Float, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def cost_per_gram(self) -> float:
        return self.cost_per_kg * COST_PER_GRAM_FACTOR


class ServiceFee(Base):
    """Selectable per-quote fee: project type (design/scan) or named extra."""
    __tablename__ = "service_fees"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(Enum(FeeKind), nullable=False)
    key = Column(String, unique=True, nullable=True)  # 'design' | 'scan' for project fees
    name = Column(String, nullable=False)
    amount = Column(Float, default=0.0)


class CompanyProfile(Base):
    """Single shared record printed on every quote document."""
    __tablename__ = "company_profile"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    document = Column(String, nullable=True)  # CNPJ
    address = Column(Text, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    website = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# --- Quotes ---

class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False)
    client_ref = Column(String, nullable=True)
    client_name = Column(String, nullable=False)
    status = Column(Enum(QuoteStatus), default=QuoteStatus.DRAFT)
    priority = Column(Enum(QuotePriority), default=QuotePriority.MEDIUM)
    notes = Column(Text)
    project_summary = Column(Text)
    payment_terms = Column(String, nullable=True)
    delivery_address = Column(Text, nullable=True)
    # Pricing inputs
    discount_input = Column(String, nullable=True)  # as typed, e.g. "10%"
    project_type = Column(String, default="none")   # 'design' | 'scan' | 'none'
    # Pricing caches, always recomputed from items/fees, never edited directly
    project_fee = Column(Float, default=0.0)
    discount = Column(Float, default=0.0)
    subtotal = Column(Float, default=0.0)
    total = Column(Float, default=0.0)
    # Schedule
    planned_start = Column(DateTime, nullable=True)
    planned_delivery = Column(DateTime, nullable=True)
    current_stage = Column(String, nullable=True)
    responsible = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    # Generated document
    artifact_uri = Column(String, nullable=True)
    artifact_file_name = Column(String, nullable=True)
    artifact_generated_at = Column(DateTime, nullable=True)

    items = relationship(
        "QuoteItem", back_populates="quote", cascade="all, delete-orphan", order_by="QuoteItem.position",
    )
    selected_fees = relationship("QuoteFee", back_populates="quote", cascade="all, delete-orphan")
    production_plan = relationship(
        "ProductionPlan", back_populates="quote", uselist=False, cascade="all, delete-orphan",
    )


class QuoteItem(Base):
    """Product line on a quote, made of one or more printed pieces."""
    __tablename__ = "quote_items"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)
    position = Column(Integer, default=0)
    name = Column(String, nullable=False)
    quantity = Column(Float, default=1.0)
    assembly = Column(String, nullable=True)
    painting = Column(String, nullable=True)
    unit_value = Column(Float, default=0.0)   # rounded
    total_value = Column(Float, default=0.0)  # rounded

    quote = relationship("Quote", back_populates="items")
    pieces = relationship(
        "QuotePiece", back_populates="item", cascade="all, delete-orphan", order_by="QuotePiece.position",
    )


class QuotePiece(Base):
    __tablename__ = "quote_pieces"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("quote_items.id"), nullable=False)
    position = Column(Integer, default=0)
    name = Column(String, nullable=False)
    quantity = Column(Float, default=1.0)
    material = Column(String, nullable=True)  # material name, resolved against the catalog
    weight_grams = Column(Float, default=0.0)
    print_hours = Column(Float, default=0.0)
    additional_cost = Column(Float, default=0.0)
    computed_value = Column(Float, default=0.0)  # unrounded

    item = relationship("QuoteItem", back_populates="pieces")


class QuoteFee(Base):
    """Snapshot of an extra fee selected on a quote."""
    __tablename__ = "quote_fees"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False)
    name = Column(String, nullable=False)
    amount = Column(Float, default=0.0)

    quote = relationship("Quote", back_populates="selected_fees")


# --- Production ---

class ProductionPlan(Base):
    __tablename__ = "production_plans"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), unique=True, nullable=False)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quote = relationship("Quote", back_populates="production_plan")
    sectors = relationship(
        "ProductionSector",
        back_populates="plan",
        cascade="all, delete-orphan",
        collection_class=attribute_mapped_collection("sector"),
    )


class ProductionSector(Base):
    __tablename__ = "production_sectors"
    __table_args__ = (UniqueConstraint("plan_id", "sector", name="uq_plan_sector"),)

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("production_plans.id"), nullable=False)
    sector = Column(String, nullable=False)  # SectorKey value
    status = Column(String, nullable=False, default="awaiting")  # open vocabulary
    responsible = Column(String, nullable=True)
    planned_start = Column(DateTime, nullable=True)
    planned_end = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    percent_complete = Column(Float, nullable=True)
    completed_units = Column(Float, nullable=True)  # logged by record_sector_output
    rework_units = Column(Float, default=0.0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    plan = relationship("ProductionPlan", back_populates="sectors")
