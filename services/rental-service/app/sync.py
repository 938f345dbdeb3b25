from dataclasses import dataclass

from .models import VehicleStatus
from .state_machine import RentalEvent


@dataclass(frozen=True)
class ResourceWrite:
    status: VehicleStatus
    available: bool


RESERVE = ResourceWrite(VehicleStatus.RESERVED, True)
OCCUPY = ResourceWrite(VehicleStatus.RENTED, False)
RELEASE = ResourceWrite(VehicleStatus.AVAILABLE, True)

# extend leaves the vehicle untouched
VEHICLE_WRITES: dict[RentalEvent, ResourceWrite | None] = {
    RentalEvent.CREATE: RESERVE,
    RentalEvent.UPDATE: RESERVE,
    RentalEvent.START: OCCUPY,
    RentalEvent.COMPLETE: RELEASE,
    RentalEvent.TERMINATE_EARLY: RELEASE,
    RentalEvent.CANCEL: RELEASE,
    RentalEvent.EXTEND: None,
    RentalEvent.DELETE: RELEASE,
}


def vehicle_write_for(event: RentalEvent) -> ResourceWrite | None:
    return VEHICLE_WRITES[event]


class AvailabilitySynchronizer:
    """
    Applies the vehicle side of a rental transition.

    Must be called with the store bound to the session that also writes the
    rental, so both changes commit or roll back together.
    """

    def __init__(self, vehicles):
        self.vehicles = vehicles

    async def apply(self, event: RentalEvent, vehicle_id: int) -> ResourceWrite | None:
        write = vehicle_write_for(event)
        if write is None:
            return None
        await self.vehicles.update_status(write.status, write.available, vehicle_id)
        return write

    async def release(self, vehicle_id: int) -> ResourceWrite:
        await self.vehicles.update_status(RELEASE.status, RELEASE.available, vehicle_id)
        return RELEASE
