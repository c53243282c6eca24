from models.base_model import Base, BaseModel
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"
    f_name = Column(String(255), nullable=True)
    l_name = Column(String(255), nullable=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)

    # removing a token from this list deletes its row (RetentionPolicy relies on it)
    refresh_tokens = relationship(
        "RefreshToken",
        order_by="RefreshToken.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def get_refresh_token(self, token: str):
        """Return this user's record for `token`, or None."""
        return next((rt for rt in self.refresh_tokens if rt.token == token), None)
