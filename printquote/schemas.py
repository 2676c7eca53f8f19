from pydantic import BaseModel, Field
from typing import Dict, Optional, List, Union
from datetime import datetime
from .models import QuoteStatus, QuotePriority


# --- Catalog ---

class MaterialBase(BaseModel):
    name: str
    cost_per_kg: float


class MaterialCreate(MaterialBase):
    pass


class Material(MaterialBase):
    id: int
    cost_per_gram: float
    class Config:
        from_attributes = True


class ExtraFeeCreate(BaseModel):
    name: str
    amount: float = 0.0


class ServiceFeesUpdate(BaseModel):
    design: float
    scan: float
    extras: List[ExtraFeeCreate] = []


class ServiceFee(BaseModel):
    id: int
    kind: str
    key: Optional[str] = None
    name: str
    amount: float
    class Config:
        from_attributes = True


class CompanyProfileBase(BaseModel):
    name: str
    document: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class CompanyProfile(CompanyProfileBase):
    id: int
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True


# --- Quotes ---

class PieceCreate(BaseModel):
    name: str = "Unnamed piece"
    quantity: float = Field(1.0, ge=0)
    material: Optional[str] = None
    weight_grams: float = Field(0.0, ge=0)
    print_hours: float = Field(0.0, ge=0)
    additional_cost: float = 0.0


class LineProductCreate(BaseModel):
    name: str = "Unnamed product"
    quantity: float = Field(1.0, ge=0)
    assembly: Optional[str] = None
    painting: Optional[str] = None
    pieces: List[PieceCreate] = []


class SectorState(BaseModel):
    status: Optional[str] = None
    responsible: Optional[str] = None
    planned_start: Optional[datetime] = None
    planned_end: Optional[datetime] = None
    notes: Optional[str] = None
    percent_complete: Optional[float] = None


class ProductionPlanCreate(BaseModel):
    summary: Optional[str] = None
    sectors: Dict[str, SectorState] = {}


class QuoteCreate(BaseModel):
    code: Optional[str] = None  # generated when omitted
    client_ref: Optional[str] = None
    client_name: str
    status: QuoteStatus = QuoteStatus.DRAFT
    priority: QuotePriority = QuotePriority.MEDIUM
    notes: Optional[str] = None
    project_summary: Optional[str] = None
    payment_terms: Optional[str] = None
    delivery_address: Optional[str] = None
    discount: Union[str, float, None] = "0"
    project_type: str = "none"
    extra_fee_ids: List[int] = []
    planned_start: Optional[datetime] = None
    planned_delivery: Optional[datetime] = None
    current_stage: Optional[str] = None
    responsible: Optional[str] = None
    items: List[LineProductCreate] = []
    production: Optional[ProductionPlanCreate] = None


class QuoteUpdate(BaseModel):
    client_name: Optional[str] = None
    priority: Optional[QuotePriority] = None
    notes: Optional[str] = None
    project_summary: Optional[str] = None
    payment_terms: Optional[str] = None
    delivery_address: Optional[str] = None
    discount: Union[str, float, None] = None
    project_type: Optional[str] = None
    extra_fee_ids: Optional[List[int]] = None
    planned_start: Optional[datetime] = None
    planned_delivery: Optional[datetime] = None
    current_stage: Optional[str] = None
    responsible: Optional[str] = None
    items: Optional[List[LineProductCreate]] = None


class StatusUpdate(BaseModel):
    status: QuoteStatus


class SectorUpdate(SectorState):
    pass


class SectorOutput(BaseModel):
    quantity: float = 0.0  # negative on logistics records a recall
    rework: float = Field(0.0, ge=0)
