import uuid
from datetime import datetime, time, timezone

from sqlalchemy import String, DateTime, Boolean, ForeignKey, Numeric, Integer, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storeshift.core.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Advisory ceilings – reported by hours_summary, never enforced
    weekly_hours_limit: Mapped[float | None] = mapped_column(Numeric(6, 2), nullable=True)
    monthly_hours_limit: Mapped[float | None] = mapped_column(Numeric(6, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    location: Mapped["Location"] = relationship(back_populates="employees")  # type: ignore[name-defined]
    unavailable_windows: Mapped[list["UnavailableWindow"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan", lazy="selectin"
    )
    shifts: Mapped[list["Shift"]] = relationship(back_populates="employee")  # type: ignore[name-defined]


class UnavailableWindow(Base):
    """Recurring weekly window in which the employee cannot work."""

    __tablename__ = "unavailable_windows"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Mon ... 6=Sun
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    employee: Mapped["Employee"] = relationship(back_populates="unavailable_windows")
