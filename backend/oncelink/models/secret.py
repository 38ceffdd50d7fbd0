from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from oncelink.database import Base


class Secret(Base):
    """
    An encrypted message waiting to be revealed exactly once.

    The ciphertext is produced in the browser (AES-GCM, nonce prepended,
    base64 encoded) and is stored and returned verbatim. The decryption key
    never reaches the server.
    """

    __tablename__ = "secrets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    ciphertext: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
