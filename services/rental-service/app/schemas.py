from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .models import RentalStatus


class RentalRequest(BaseModel):
    vehicle_id: int | None = None
    vehicle_plate: str | None = None
    customer_id: int
    start_date: datetime
    end_date: datetime
    notes: str | None = Field(default=None, max_length=1000)


class ExtendRentalRequest(BaseModel):
    new_end_date: datetime


class RentalResponse(BaseModel):
    id: int
    vehicle_id: int
    vehicle_plate: str | None = None
    vehicle_brand: str | None = None
    vehicle_model: str | None = None
    vehicle_daily_rate: Decimal | None = None
    customer_id: int
    customer_name: str | None = None

    start_date: datetime
    end_date: datetime
    actual_return_date: datetime | None = None
    status: RentalStatus

    total_amount: Decimal
    original_total_amount: Decimal | None = None
    early_termination_fee: Decimal | None = None
    ended_early: bool = False
    notes: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None


class ErrorResponse(BaseModel):
    error: str
    detail: str
