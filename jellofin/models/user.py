"""User model"""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from ..database import Base


class User(Base):
    """User account model"""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    created = Column(DateTime)
    lastlogin = Column(DateTime)
    lastused = Column(DateTime)

    properties = relationship(
        "UserProperty",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def __repr__(self):
        return f"<User {self.username}>"
