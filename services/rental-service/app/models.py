import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .db import Base


class RentalStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EARLY_TERMINATED = "EARLY_TERMINATED"
    CANCELLED = "CANCELLED"


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    RENTED = "RENTED"
    MAINTENANCE = "MAINTENANCE"


# statuses that occupy a vehicle for overlap checks and the active-rental gauge
ACTIVE_STATUSES = frozenset({RentalStatus.PENDING, RentalStatus.IN_PROGRESS})


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True)
    plate = Column(String, unique=True, nullable=False, index=True)
    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)

    daily_rate = Column(Numeric(10, 2), nullable=False)
    available = Column(Boolean, nullable=False, default=True)
    status = Column(String, nullable=False, default=VehicleStatus.AVAILABLE.value)

    __table_args__ = (
        CheckConstraint("daily_rate > 0", name="ck_vehicles_daily_rate_positive"),
    )


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)


class Rental(Base):
    __tablename__ = "rentals"

    id = Column(Integer, primary_key=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    actual_return_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(String, nullable=False, index=True)  # see RentalStatus

    total_amount = Column(Numeric(10, 2), nullable=False)
    original_total_amount = Column(Numeric(10, 2), nullable=True)
    early_termination_fee = Column(Numeric(10, 2), nullable=True)
    ended_early = Column(Boolean, nullable=False, default=False)
    notes = Column(String(1000), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    vehicle = relationship("Vehicle", lazy="joined")
    customer = relationship("Customer", lazy="joined")

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_rentals_end_after_start"),
        CheckConstraint("total_amount > 0", name="ck_rentals_total_positive"),
        Index("ix_rentals_vehicle_id_status", "vehicle_id", "status"),
        Index("ix_rentals_customer_id_status", "customer_id", "status"),
    )
