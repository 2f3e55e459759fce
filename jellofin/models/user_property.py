"""User property model"""

from sqlalchemy import Column, ForeignKey, String, Text

from ..database import Base


class UserProperty(Base):
    """Per-user policy and configuration key-value store"""

    __tablename__ = "user_properties"

    userid = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    key = Column(String, primary_key=True)
    value = Column(Text)  # bools as "0"/"1", lists comma-joined

    def __repr__(self):
        return f"<UserProperty {self.userid}:{self.key}>"
