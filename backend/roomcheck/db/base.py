from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from roomcheck.utils.clock import ensure_utc, utcnow

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes in and out, also on SQLite"""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        return ensure_utc(value)


class BaseModel:
    """Common columns shared by every table"""

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
