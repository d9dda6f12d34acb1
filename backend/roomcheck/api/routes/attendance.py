from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from roomcheck.api.deps import get_attendance_service, get_request_meta
from roomcheck.core.exceptions import AttendanceError
from roomcheck.schemas import (
    AttendanceContextResponse,
    AttendeeListResponse,
    CodeSentResponse,
    OccupancyResult,
    SendCodeRequest,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from roomcheck.services.attendance import AttendanceCodeService
from roomcheck.utils.clock import utcnow
from roomcheck.utils.request import RequestMeta

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/meetings/{booking_id}/attendance/send-code", response_model=CodeSentResponse)
def send_code(
    booking_id: int,
    body: SendCodeRequest,
    service: AttendanceCodeService = Depends(get_attendance_service),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Issue a 4-digit attendance code and e-mail it to the invitee
    """
    try:
        result = service.request_code(body.invitation_id, utcnow(), booking_id=booking_id, meta=meta)

        return CodeSentResponse(
            status="success",
            message="Attendance code sent to your email",
            send_count=result.send_count,
            expires_at=result.expires_at,
        )

    except (AttendanceError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Send code error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to send attendance code")


@router.post("/meetings/{booking_id}/attendance/verify", response_model=VerifyCodeResponse)
def verify_code(
    booking_id: int,
    body: VerifyCodeRequest,
    service: AttendanceCodeService = Depends(get_attendance_service),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Verify a submitted attendance code and mark the invitee present
    """
    try:
        result = service.verify_code(body.invitation_id, body.code, utcnow(), booking_id=booking_id, meta=meta)

        return VerifyCodeResponse(
            status="success",
            message="Attendance confirmed",
            checked_in_at=result.checked_in_at,
            occupancy=OccupancyResult.model_validate(result.occupancy),
        )

    except (AttendanceError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Verify code error: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to verify attendance code")


@router.get("/meetings/{booking_id}/attendance/context", response_model=AttendanceContextResponse)
def attendance_context(
    booking_id: int,
    service: AttendanceCodeService = Depends(get_attendance_service),
):
    """Meeting details, live occupancy and whether the QR code may be shown"""
    context = service.get_occupancy_context(booking_id, utcnow())
    return AttendanceContextResponse.model_validate(context)


@router.get("/meetings/{booking_id}/attendance/attendees", response_model=AttendeeListResponse)
def list_attendees(
    booking_id: int,
    t: Optional[str] = Query(None, description="QR access token"),
    service: AttendanceCodeService = Depends(get_attendance_service),
):
    """Read-only attendee list reached by scanning the meeting QR code"""
    attendees = service.list_attendees(booking_id, t, utcnow())
    return AttendeeListResponse.model_validate(attendees)
