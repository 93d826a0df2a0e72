# backend/models/token.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from database import Base


# Access tokens withdrawn before they expire, keyed by their jti claim
class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False) # Row can be purged after this
    revoked_at = Column(DateTime(timezone=True), server_default=func.now())
