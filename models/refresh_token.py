"""
RefreshToken model: one opaque refresh token issued to a user.
Fields:
- token (unique, indexed) - the opaque string handed to the client
- user_id (String(36)) - FK to users.id
- created_at, expires_at, created_by_ip
- revoked_at, revoked_by_ip, reason_revoked - set once, when revoked
- replaced_by_token - forward link to the successor, only set by rotation
- version - optimistic concurrency counter (SQLAlchemy version_id_col)

is_expired / is_revoked / is_active are derived and never stored.
"""
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey
from models.base_model import BaseModel, Base, utcnow


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(128), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_by_ip = Column(String(64), nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    revoked_by_ip = Column(String(64), nullable=True)
    reason_revoked = Column(String(255), nullable=True)
    replaced_by_token = Column(String(128), nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_expired(self) -> bool:
        return utcnow() >= self.expires_at

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_active(self) -> bool:
        return not self.is_revoked and not self.is_expired

    def __repr__(self):
        return f"<RefreshToken id={self.id} user={self.user_id} active={self.is_active}>"
