import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Shift(Base):
    __tablename__ = "shifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    # "HH:MM", local to the employee's time zone
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    employees: Mapped[list["User"]] = relationship(
        "User", back_populates="shift", lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<Shift id={self.id} name={self.name} {self.start_time}-{self.end_time}>"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        Enum("admin", "manager", "employee", name="user_role"),
        nullable=False,
        default="employee",
    )
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    shift_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("shifts.id", ondelete="SET NULL"), nullable=True
    )
    # IANA name, e.g. "Asia/Kolkata"; None falls back to ATTENDANCE_TIMEZONE
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    shift: Mapped["Shift | None"] = relationship(
        "Shift", back_populates="employees", lazy="raise"
    )
    attendance_logs: Mapped[list["AttendanceLog"]] = relationship(
        "AttendanceLog", back_populates="employee", lazy="raise"
    )
    import_histories: Mapped[list["ImportHistory"]] = relationship(
        "ImportHistory", back_populates="uploader", lazy="raise"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} role={self.role}>"


class AttendanceLog(Base):
    __tablename__ = "attendance_logs"

    __table_args__ = (
        UniqueConstraint(
            "employee_id",
            "timestamp",
            "event",
            name="uq_attendance_punch",
        ),
        Index("ix_attendance_employee_time", "employee_id", "timestamp"),
        Index("ix_attendance_timestamp", "timestamp"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    event: Mapped[str] = mapped_column(
        Enum("IN", "OUT", name="punch_event_enum"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    punch_type: Mapped[str] = mapped_column(
        Enum("web", "biometric", "import", name="punch_type_enum"),
        nullable=False,
        default="web",
    )
    has_address: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    location_address: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_remote: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    device: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    employee: Mapped["User"] = relationship("User", back_populates="attendance_logs")

    def __repr__(self) -> str:
        return (
            f"<AttendanceLog id={self.id} employee_id={self.employee_id} "
            f"timestamp={self.timestamp} event={self.event}>"
        )


class ImportHistory(Base):
    __tablename__ = "import_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    status: Mapped[str] = mapped_column(
        Enum("success", "partial", "failed", name="import_status_enum"), nullable=False
    )
    logs: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    uploader: Mapped["User | None"] = relationship(
        "User", back_populates="import_histories"
    )

    def __repr__(self) -> str:
        return f"<ImportHistory id={self.id} filename={self.filename} status={self.status}>"
