"""
SQLAlchemy persistence boundary for attendance state.

Counter changes and the single-use check-in are issued as conditional
UPDATE statements so that concurrent requests against the same invitation
cannot both pass a stale read. Reads always repopulate from the database
because those UPDATEs bypass the identity map.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from roomcheck.models.booking import Booking
from roomcheck.models.invitation import PRESENT, Invitation


class InvitationStore:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_invitation(self, invitation_id: int, booking_id: Optional[int] = None) -> Optional[Invitation]:
        query = select(Invitation).where(Invitation.id == invitation_id)
        if booking_id is not None:
            query = query.where(Invitation.booking_id == booking_id)
        return self.db.scalars(query.execution_options(populate_existing=True)).first()

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.db.get(Booking, booking_id, populate_existing=True)

    def list_invitations(self, booking_id: int) -> List[Invitation]:
        query = (
            select(Invitation)
            .where(Invitation.booking_id == booking_id)
            .order_by(Invitation.invitee_name, Invitation.invitee_email)
            .execution_options(populate_existing=True)
        )
        return list(self.db.scalars(query).all())

    # ------------------------------------------------------------------
    # Atomic writes
    # ------------------------------------------------------------------
    def record_code_issued(
        self,
        invitation_id: int,
        expected_send_count: int,
        code_hash: str,
        code_salt: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """
        Store a freshly issued code.
        Compare-and-set on the send counter: returns False when another
        request issued a code since the counter was read.
        """
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.code_send_count == expected_send_count,
                Invitation.checked_in_at.is_(None),
            )
            .values(
                code_hash=code_hash,
                code_salt=code_salt,
                code_expires_at=expires_at,
                code_send_count=Invitation.code_send_count + 1,
                code_last_sent_at=now,
                verify_attempt_count=0,
                verify_last_attempt_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._commit_if_changed(result.rowcount)

    def reserve_attempt(
        self,
        invitation_id: int,
        now: datetime,
        max_attempts: int,
        cooldown_minutes: int,
    ) -> Optional[int]:
        """
        Spend one verification attempt before the code is compared.
        The budget check and the increment are one conditional UPDATE, so
        concurrent guesses cannot all pass a stale read. Returns the new
        count, or None when the budget is spent or the invitee is present.
        """
        cooldown_cutoff = now - timedelta(minutes=cooldown_minutes)
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.checked_in_at.is_(None),
                or_(
                    Invitation.verify_attempt_count < max_attempts,
                    Invitation.verify_last_attempt_at.is_(None),
                    Invitation.verify_last_attempt_at <= cooldown_cutoff,
                ),
            )
            .values(
                verify_attempt_count=Invitation.verify_attempt_count + 1,
                verify_last_attempt_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if not self._commit_if_changed(result.rowcount):
            return None
        return self.db.scalar(select(Invitation.verify_attempt_count).where(Invitation.id == invitation_id)) or 0

    def mark_present(self, invitation_id: int, expected_code_hash: str, now: datetime) -> bool:
        """
        Single-use transition to present.
        Only succeeds while checked_in_at is NULL and the verified hash is
        still the stored one; the code is cleared in the same statement.
        """
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.checked_in_at.is_(None),
                Invitation.code_hash == expected_code_hash,
            )
            .values(
                checked_in_at=now,
                attendance_status=PRESENT,
                code_hash=None,
                code_salt=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._commit_if_changed(result.rowcount)

    def mark_organizer_checked_in(self, booking_id: int, now: datetime) -> bool:
        result = self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.checked_in_at.is_(None))
            .values(checked_in_at=now)
            .execution_options(synchronize_session=False)
        )
        return self._commit_if_changed(result.rowcount)

    def _commit_if_changed(self, rowcount: int) -> bool:
        if rowcount == 1:
            self.db.commit()
            return True
        self.db.rollback()
        return False
