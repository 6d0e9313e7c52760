import uuid
from datetime import date, datetime, time, timezone

from sqlalchemy import String, DateTime, Boolean, ForeignKey, Float, Integer, Time, Date, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storeshift.core.database import Base


class ShiftTemplate(Base):
    __tablename__ = "shift_templates"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    blueprints: Mapped[list["TemplateBlueprint"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateBlueprint.position",
        lazy="selectin",
    )


class TemplateBlueprint(Base):
    """One shift pattern inside a template; no concrete date, no publish state."""

    __tablename__ = "template_blueprints"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("shift_templates.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    employee_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("employees.id"), nullable=False)
    # Exactly one of day_offset / weekday is set
    day_offset: Mapped[int | None] = mapped_column(Integer, nullable=True)  # days after anchor
    weekday: Mapped[int | None] = mapped_column(Integer, nullable=True)     # 0=Mon ... 6=Sun
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    template: Mapped["ShiftTemplate"] = relationship(back_populates="blueprints")


class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    location_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("employees.id"), nullable=False)
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("shift_templates.id", ondelete="SET NULL"), nullable=True
    )
    source_shift_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)  # set by duplication

    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    hours: Mapped[float] = mapped_column(Float, nullable=False)  # always derived from start/end

    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(back_populates="shifts")  # type: ignore[name-defined]

    __table_args__ = (
        Index("ix_shifts_location_date", "location_id", "date"),
        Index("ix_shifts_employee_date", "employee_id", "date"),
    )
    __mapper_args__ = {"version_id_col": version}
