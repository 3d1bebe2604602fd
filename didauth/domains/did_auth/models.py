import uuid
from datetime import datetime, timezone
from typing import Any, Union

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from didauth.core.db import Base


# Values asserted by the wallet are whatever JSON carried.
AttributeValue = Union[str, int, float, bool, None, list, dict]


class DIDAuthRequest(Base):
    __tablename__ = "did_auth_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    state: Mapped[str] = mapped_column(String, unique=True, index=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, default=lambda: datetime.now(timezone.utc)
    )

    @property
    def did(self) -> str | None:
        value = self.data.get("DID") or self.data.get("did")
        return str(value) if value else None

    def to_snapshot(self) -> dict:
        return {
            "state": self.state,
            "verified": bool(self.verified),
            "data": dict(self.data or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
