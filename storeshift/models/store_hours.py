import uuid
from datetime import date, time

from sqlalchemy import String, Boolean, ForeignKey, Integer, Time, Date, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storeshift.core.database import Base

HOLIDAY_DAY_INDEX = 7  # synthetic weekday entry holding holiday hours


class StoreSchedule(Base):
    """Weekly opening hours of a location, one row per weekday (0=Mon ... 6=Sun, 7=holiday)."""

    __tablename__ = "store_schedules"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, default=False)
    # [{"open_time": "09:00", "close_time": "14:00"}, ...] – disjoint, ordered
    time_ranges: Mapped[list] = mapped_column(JSON, default=list)

    # Legacy single range, folded into time_ranges when the calendar is loaded
    open_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    __table_args__ = (UniqueConstraint("location_id", "day_of_week", name="uq_store_schedule_day"),)


class StoreException(Base):
    """Date-specific override of the weekly schedule (holidays, special hours)."""

    __tablename__ = "store_exceptions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )

    date: Mapped[date] = mapped_column(Date, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, default=False)
    time_ranges: Mapped[list] = mapped_column(JSON, default=list)

    open_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)  # e.g. "Inventory"
    is_holiday: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (UniqueConstraint("location_id", "date", name="uq_store_exception_date"),)
