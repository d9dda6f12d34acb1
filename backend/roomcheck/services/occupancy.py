from dataclasses import asdict, dataclass
from typing import Iterable

from roomcheck.models.invitation import INVITATION_ACCEPTED, PRESENT

STATUS_LOW = "low"
STATUS_MEDIUM = "medium"
STATUS_HIGH = "high"
STATUS_OVER = "over"


@dataclass(frozen=True)
class OccupancySnapshot:
    present: int
    accepted: int
    capacity: int
    percentage: int
    status: str

    def to_dict(self) -> dict:
        return asdict(self)


def occupancy_percentage(present: int, capacity: int) -> int:
    if capacity <= 0:
        return 0
    # Half-up rounding; Python's round() would send 0.5 to the even neighbour
    return int(present * 100 / capacity + 0.5)


def occupancy_status(present: int, capacity: int) -> str:
    if present > capacity:
        return STATUS_OVER
    percentage = occupancy_percentage(present, capacity)
    if percentage >= 90:
        return STATUS_HIGH
    if percentage >= 60:
        return STATUS_MEDIUM
    return STATUS_LOW


def compute_occupancy(invitations: Iterable, room_capacity: int) -> OccupancySnapshot:
    """Aggregate invitation rows into present/accepted counts against room capacity"""
    present = 0
    accepted = 0
    for invitation in invitations:
        if invitation.attendance_status == PRESENT:
            present += 1
        if invitation.status == INVITATION_ACCEPTED:
            accepted += 1

    capacity = room_capacity or 0
    return OccupancySnapshot(
        present=present,
        accepted=accepted,
        capacity=capacity,
        percentage=occupancy_percentage(present, capacity),
        status=occupancy_status(present, capacity),
    )
