from fastapi import APIRouter, Depends
from typing import Optional
import logging

from roomcheck.api.deps import get_attendance_service, get_request_meta
from roomcheck.schemas import CheckInRequest, CheckInResponse, CheckInStatusResponse
from roomcheck.services.attendance import AttendanceCodeService
from roomcheck.utils.clock import utcnow
from roomcheck.utils.request import RequestMeta

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/meetings/{booking_id}/check-in", response_model=CheckInResponse)
def organizer_check_in(
    booking_id: int,
    body: Optional[CheckInRequest] = None,
    service: AttendanceCodeService = Depends(get_attendance_service),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Organizer check-in. Opens invitee verification and the QR code.
    """
    checked_in_at = service.check_in_organizer(booking_id, utcnow(), actor=body.actor if body else None, meta=meta)

    return CheckInResponse(
        status="success",
        message="Checked in successfully",
        checked_in_at=checked_in_at,
    )


@router.get("/meetings/{booking_id}/check-in", response_model=CheckInStatusResponse)
def organizer_check_in_status(
    booking_id: int,
    service: AttendanceCodeService = Depends(get_attendance_service),
):
    status = service.get_check_in_status(booking_id, utcnow())
    return CheckInStatusResponse.model_validate(status)
