from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from oncelink.database import Base


class RequestLogEntry(Base):
    __tablename__ = "request_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_identity: Mapped[str] = mapped_column(String(255), nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)

    __table_args__ = (Index("ix_request_log_client_identity_ts", "client_identity", "ts"),)
