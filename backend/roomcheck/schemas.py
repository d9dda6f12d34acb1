from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime


class SendCodeRequest(BaseModel):
    invitation_id: int


class VerifyCodeRequest(BaseModel):
    invitation_id: int
    code: str = Field(..., max_length=16)  # format is checked by the service, not here


class CheckInRequest(BaseModel):
    actor: Optional[str] = None


class OccupancyResult(BaseModel):
    present: int
    accepted: int
    capacity: int
    percentage: int
    status: str

    model_config = ConfigDict(from_attributes=True)


class CodeSentResponse(BaseModel):
    status: str
    message: str
    send_count: int
    expires_at: datetime


class VerifyCodeResponse(BaseModel):
    status: str
    message: str
    checked_in_at: datetime
    occupancy: OccupancyResult


class MeetingResult(BaseModel):
    id: int
    title: str
    start_time: datetime
    end_time: datetime
    room_name: str
    room_capacity: int
    organizer_checked_in_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceContextResponse(BaseModel):
    meeting: MeetingResult
    occupancy: OccupancyResult
    show_qr: bool

    model_config = ConfigDict(from_attributes=True)


class AttendeeResult(BaseModel):
    invitation_id: int
    display_name: str
    attendance_status: str

    model_config = ConfigDict(from_attributes=True)


# Attendees are reached through the QR token, e-mail addresses stay out of it
class AttendeeListResponse(BaseModel):
    booking_id: int
    total_invited: int
    present_count: int
    attendees: List[AttendeeResult]

    model_config = ConfigDict(from_attributes=True)


class QRCodeResponse(BaseModel):
    booking_id: int
    meeting_title: str
    qr_url: str
    qr_code_data: str  # base64 PNG data URL
    expires_at: datetime


class CheckInResponse(BaseModel):
    status: str
    message: str
    checked_in_at: datetime


class CheckInStatusResponse(BaseModel):
    booking_id: int
    is_checked_in: bool
    checked_in_at: Optional[datetime] = None
    can_check_in: bool
    check_in_available_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    status: str = "error"
    error: str
    message: str
    send_count: Optional[int] = None
