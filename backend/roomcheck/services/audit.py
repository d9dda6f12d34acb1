"""Best-effort writer for attendance audit events."""
import logging
from typing import Any, Callable, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roomcheck.models.attendance_event import (
    PAYLOAD_TYPES,
    AttendanceEvent,
    AttendanceEventPayload,
    AttendanceEventType,
    EventPayload,
)
from roomcheck.utils.request import RequestMeta, sanitize_user_agent

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Append-only event recorder.

    Each event is written in its own session, after the state change that
    triggered it has been committed, so a failing insert can never roll the
    primary transition back.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(
        self,
        event_type: Union[AttendanceEventType, str],
        booking_id: int,
        invitation_id: Optional[int] = None,
        payload: Optional[Union[AttendanceEventPayload, Mapping[str, Any]]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AttendanceEvent]:
        try:
            event_type = AttendanceEventType(event_type)
            data = self._serialize_payload(event_type, payload)
        except ValueError as e:
            logger.error(f"Audit event dropped, invalid {event_type} payload: {e}")
            return None

        db = self.session_factory()
        try:
            event = AttendanceEvent(
                event_type=event_type.value,
                booking_id=booking_id,
                invitation_id=invitation_id,
                ip_address=ip_address,
                user_agent=sanitize_user_agent(user_agent),
                payload=data,
            )
            db.add(event)
            db.commit()
            logger.info(f"📝 Audit {event_type.value} booking={booking_id} invitation={invitation_id}")
            return event
        except SQLAlchemyError:
            logger.exception(f"Failed to record {event_type.value} event for booking {booking_id}")
            db.rollback()
            return None
        finally:
            db.close()

    def record_for_request(
        self,
        event_type: Union[AttendanceEventType, str],
        booking_id: int,
        invitation_id: Optional[int] = None,
        payload: Optional[Union[AttendanceEventPayload, Mapping[str, Any]]] = None,
        meta: Optional[RequestMeta] = None,
    ) -> Optional[AttendanceEvent]:
        meta = meta or RequestMeta()
        return self.record(
            event_type,
            booking_id,
            invitation_id=invitation_id,
            payload=payload,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

    @staticmethod
    def _serialize_payload(event_type: AttendanceEventType, payload) -> dict:
        if payload is None:
            return {}
        if not isinstance(payload, EventPayload):
            # pydantic's ValidationError is a ValueError
            payload = PAYLOAD_TYPES[event_type].model_validate(dict(payload))
        return payload.model_dump(mode="json")
