"""QuickConnect model"""

from sqlalchemy import Boolean, Column, DateTime, String

from ..database import Base


class QuickConnect(Base):
    """Pending or authorized QuickConnect code"""

    __tablename__ = "quickconnect"

    deviceid = Column(String, primary_key=True)
    secret = Column(String, primary_key=True)
    userid = Column(String, nullable=False, default="")
    authorized = Column(Boolean, nullable=False, default=False)
    code = Column(String, nullable=False, index=True)
    created = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<QuickConnect {self.code} authorized={self.authorized}>"
