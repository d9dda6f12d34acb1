from fastapi import Depends, Request
from sqlalchemy.orm import Session

from roomcheck.core.config import get_settings
from roomcheck.db.session import SessionLocal, get_db
from roomcheck.services.attendance import AttendanceCodeService, AttendancePolicy
from roomcheck.services.audit import AuditLog
from roomcheck.services.mailer import CodeMailer
from roomcheck.services.store import InvitationStore
from roomcheck.utils.request import RequestMeta, request_meta_from_headers


def get_mailer() -> CodeMailer:
    return CodeMailer(get_settings())


def get_audit_log() -> AuditLog:
    """Audit events use their own sessions, never the request one"""
    return AuditLog(SessionLocal)


def get_attendance_service(
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    mailer: CodeMailer = Depends(get_mailer),
) -> AttendanceCodeService:
    return AttendanceCodeService(
        store=InvitationStore(db),
        audit=audit,
        mailer=mailer,
        policy=AttendancePolicy.from_settings(get_settings()),
    )


def get_request_meta(request: Request) -> RequestMeta:
    client_host = request.client.host if request.client else None
    return request_meta_from_headers(request.headers, client_host)
