from datetime import datetime

from fastapi import APIRouter, Depends, Response

from .clock import as_utc
from .deps import get_rental_service
from .models import Rental, RentalStatus
from .schemas import ExtendRentalRequest, RentalRequest, RentalResponse
from .service import RentalService

router = APIRouter(prefix="/rentals", tags=["Rentals"])


def _dt(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


def to_response(rental: Rental) -> RentalResponse:
    vehicle = rental.vehicle
    customer = rental.customer
    return RentalResponse(
        id=rental.id,
        vehicle_id=rental.vehicle_id,
        vehicle_plate=vehicle.plate if vehicle else None,
        vehicle_brand=vehicle.brand if vehicle else None,
        vehicle_model=vehicle.model if vehicle else None,
        vehicle_daily_rate=vehicle.daily_rate if vehicle else None,
        customer_id=rental.customer_id,
        customer_name=customer.name if customer else None,
        start_date=_dt(rental.start_date),
        end_date=_dt(rental.end_date),
        actual_return_date=_dt(rental.actual_return_date),
        status=rental.status,
        total_amount=rental.total_amount,
        original_total_amount=rental.original_total_amount,
        early_termination_fee=rental.early_termination_fee,
        ended_early=bool(rental.ended_early),
        notes=rental.notes,
        created_at=_dt(rental.created_at),
        updated_at=_dt(rental.updated_at),
    )


# ================= READS =================

@router.get("", response_model=list[RentalResponse])
async def list_rentals(svc: RentalService = Depends(get_rental_service)):
    return [to_response(r) for r in await svc.list_all()]


# declared before /{rental_id} so "period" is not parsed as an id
@router.get("/period", response_model=list[RentalResponse])
async def list_rentals_by_period(start: datetime, end: datetime, svc: RentalService = Depends(get_rental_service)):
    return [to_response(r) for r in await svc.list_by_period(start, end)]


@router.get("/customer/{customer_id}", response_model=list[RentalResponse])
async def list_rentals_by_customer(customer_id: int, svc: RentalService = Depends(get_rental_service)):
    return [to_response(r) for r in await svc.list_by_customer(customer_id)]


@router.get("/vehicle/{vehicle_id}", response_model=list[RentalResponse])
async def list_rentals_by_vehicle(vehicle_id: int, svc: RentalService = Depends(get_rental_service)):
    return [to_response(r) for r in await svc.list_by_vehicle(vehicle_id)]


@router.get("/status/{status}", response_model=list[RentalResponse])
async def list_rentals_by_status(status: RentalStatus, svc: RentalService = Depends(get_rental_service)):
    return [to_response(r) for r in await svc.list_by_status(status)]


@router.get("/{rental_id}", response_model=RentalResponse)
async def get_rental(rental_id: int, svc: RentalService = Depends(get_rental_service)):
    return to_response(await svc.get(rental_id))


# ================= TRANSITIONS =================

@router.post("", response_model=RentalResponse, status_code=201)
async def create_rental(data: RentalRequest, svc: RentalService = Depends(get_rental_service)):
    rental = await svc.create(
        vehicle_id=data.vehicle_id,
        vehicle_plate=data.vehicle_plate,
        customer_id=data.customer_id,
        start_date=data.start_date,
        end_date=data.end_date,
        notes=data.notes,
    )
    return to_response(rental)


@router.put("/{rental_id}", response_model=RentalResponse)
async def update_rental(rental_id: int, data: RentalRequest, svc: RentalService = Depends(get_rental_service)):
    rental = await svc.update(
        rental_id,
        vehicle_id=data.vehicle_id,
        vehicle_plate=data.vehicle_plate,
        customer_id=data.customer_id,
        start_date=data.start_date,
        end_date=data.end_date,
        notes=data.notes,
    )
    return to_response(rental)


@router.patch("/{rental_id}/start", response_model=RentalResponse)
async def start_rental(rental_id: int, svc: RentalService = Depends(get_rental_service)):
    return to_response(await svc.start(rental_id))


@router.patch("/{rental_id}/complete", response_model=RentalResponse)
async def complete_rental(rental_id: int, svc: RentalService = Depends(get_rental_service)):
    return to_response(await svc.complete(rental_id))


@router.patch("/{rental_id}/terminate-early", response_model=RentalResponse)
async def terminate_rental_early(rental_id: int, svc: RentalService = Depends(get_rental_service)):
    return to_response(await svc.terminate_early(rental_id))


@router.patch("/{rental_id}/cancel", response_model=RentalResponse)
async def cancel_rental(rental_id: int, svc: RentalService = Depends(get_rental_service)):
    return to_response(await svc.cancel(rental_id))


@router.patch("/{rental_id}/extend", response_model=RentalResponse)
async def extend_rental(rental_id: int, data: ExtendRentalRequest, svc: RentalService = Depends(get_rental_service)):
    return to_response(await svc.extend(rental_id, data.new_end_date))


@router.delete("/{rental_id}", status_code=204)
async def delete_rental(rental_id: int, svc: RentalService = Depends(get_rental_service)):
    await svc.delete(rental_id)
    return Response(status_code=204)
