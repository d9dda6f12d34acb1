import html
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from roomcheck.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def _format_time(value: datetime) -> str:
    return value.strftime("%I:%M %p UTC")


class CodeMailer:
    """Delivers attendance codes over SMTP"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return bool(self.settings.SMTP_HOST)

    def send_code_email(
        self,
        to_address: str,
        to_name: Optional[str],
        meeting_title: str,
        room_name: str,
        start: datetime,
        end: datetime,
        code: str,
    ) -> bool:
        """
        Send the attendance code to an invitee.
        Returns False on any delivery problem, never raises.
        """
        if not self.configured:
            logger.warning(f"SMTP is not configured, attendance code for {to_address} was not sent")
            return False

        message = self._build_message(to_address, to_name, meeting_title, room_name, start, end, code)

        try:
            with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as server:
                if self.settings.SMTP_USE_TLS:
                    server.starttls()
                if self.settings.SMTP_USERNAME:
                    server.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD or "")
                server.sendmail(self.settings.MAIL_FROM, [to_address], message.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ SMTP error while sending attendance code to {to_address}: {e}")
            return False

        logger.info(f"✅ Attendance code sent to {to_address}")
        return True

    def _build_message(self, to_address, to_name, meeting_title, room_name, start, end, code) -> MIMEMultipart:
        greeting = to_name or to_address.split("@")[0]
        date_line = start.strftime("%B %d, %Y")
        time_line = f"{_format_time(start)} - {_format_time(end)}"

        message = MIMEMultipart("alternative")
        message["From"] = self.settings.MAIL_FROM
        message["To"] = to_address
        message["Subject"] = f"Your attendance code for {meeting_title}"

        text_body = f"""Hello {greeting},

Your attendance code for "{meeting_title}" is: {code}

Room: {room_name}
Date: {date_line}
Time: {time_line}

Enter this code on the attendance page while you are in the meeting.
The code can be used once and expires shortly after the meeting ends.
"""
        safe_greeting = html.escape(greeting)
        safe_title = html.escape(meeting_title)
        safe_room = html.escape(room_name)
        html_body = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #16A34A;">Confirm your attendance</h2>
                <p>Hello {safe_greeting},</p>
                <p>Your attendance code for <strong>{safe_title}</strong> is:</p>
                <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px; margin: 24px 0;">{code}</p>
                <p>
                    <b>Room:</b> {safe_room}<br>
                    <b>Date:</b> {date_line}<br>
                    <b>Time:</b> {time_line}
                </p>
                <p style="margin-top: 30px; font-size: 12px; color: #666;">
                    The code can be used once and expires shortly after the meeting ends.
                    If you are not attending this meeting, you can ignore this email.
                </p>
            </div>
        </body>
        </html>
        """
        message.attach(MIMEText(text_body, "plain"))
        message.attach(MIMEText(html_body, "html"))
        return message
