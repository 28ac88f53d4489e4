# FILE: app/schemas/medicine.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from app.models.enums import StockStatus


class MedicineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    generic_name: Optional[str] = None
    specification: Optional[str] = None
    dosage_form: Optional[str] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    approval_no: Optional[str] = None
    storage_condition: Optional[str] = None

    retail_price: Decimal = Field(..., ge=0)
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    expiry_warning_days: Optional[int] = Field(None, ge=0)
    is_prescription: bool = False


class MedicineCreate(MedicineBase):
    medicine_code: str = Field(..., min_length=1, max_length=32)
    stock_quantity: int = Field(0, ge=0)


class MedicineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    generic_name: Optional[str] = None
    specification: Optional[str] = None
    dosage_form: Optional[str] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    approval_no: Optional[str] = None
    storage_condition: Optional[str] = None
    retail_price: Optional[Decimal] = Field(None, ge=0)
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    expiry_warning_days: Optional[int] = Field(None, ge=0)
    is_prescription: Optional[bool] = None
    status: Optional[int] = Field(None, ge=0, le=1)


class StockAdjustIn(BaseModel):
    # positive = inbound, negative = outbound
    quantity: int
    reason: str = Field(..., min_length=1, max_length=255)


class MedicineDoctorView(BaseModel):
    """Catalog view for doctors/nurses: no cost information."""
    id: int
    medicine_code: str
    name: str
    generic_name: Optional[str] = None
    specification: Optional[str] = None
    dosage_form: Optional[str] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    retail_price: Decimal
    stock_quantity: int
    stock_status: StockStatus
    is_prescription: bool
    status: int

    model_config = ConfigDict(from_attributes=True)


class MedicinePharmacistView(MedicineDoctorView):
    purchase_price: Optional[Decimal] = None
    profit_margin: Decimal = Decimal("0.00")
    min_stock: Optional[int] = None
    max_stock: Optional[int] = None
    storage_condition: Optional[str] = None
    approval_no: Optional[str] = None
    expiry_warning_days: Optional[int] = None


class InventoryStatsOut(BaseModel):
    total: int
    in_stock: int
    low_stock: int
    out_of_stock: int


class StockCheckOut(BaseModel):
    medicine_id: int
    quantity: int
    available: int
    sufficient: bool
