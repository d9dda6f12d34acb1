from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
import logging

from roomcheck.api.deps import get_attendance_service
from roomcheck.core.exceptions import AttendanceError
from roomcheck.schemas import QRCodeResponse
from roomcheck.services.attendance import AttendanceCodeService
from roomcheck.utils.clock import utcnow
from roomcheck.utils.image import qr_data_url, render_qr_png

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/meetings/{booking_id}/qr", response_model=QRCodeResponse)
def meeting_qr_code(
    booking_id: int,
    format: str = Query("data", pattern="^(data|image)$"),
    service: AttendanceCodeService = Depends(get_attendance_service),
):
    """
    QR code linking to the read-only attendance view.
    Only available after the organizer checked in and until the grace period ends.
    """
    grant = service.issue_qr_token(booking_id, utcnow())

    try:
        if format == "image":
            return Response(
                content=render_qr_png(grant.qr_url),
                media_type="image/png",
                headers={"Cache-Control": "no-store"},
            )

        return QRCodeResponse(
            booking_id=grant.booking_id,
            meeting_title=grant.meeting_title,
            qr_url=grant.qr_url,
            qr_code_data=qr_data_url(grant.qr_url),
            expires_at=grant.expires_at,
        )

    except (AttendanceError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"QR rendering error for booking {booking_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate QR code")
