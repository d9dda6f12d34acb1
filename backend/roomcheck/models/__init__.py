from roomcheck.models.booking import Booking  # noqa: F401
from roomcheck.models.invitation import Invitation  # noqa: F401
from roomcheck.models.attendance_event import AttendanceEvent  # noqa: F401
