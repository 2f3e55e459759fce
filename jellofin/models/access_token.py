"""Access token model"""

from sqlalchemy import Column, DateTime, Index, String

from ..database import Base


class AccessToken(Base):
    """Bearer token issued on login, bound to a user and a device"""

    __tablename__ = "accesstokens"
    __table_args__ = (Index("accesstokens_idx", "userid", "token", unique=True),)

    token = Column(String, primary_key=True)
    userid = Column(String, nullable=False, index=True)
    deviceid = Column(String)
    devicename = Column(String)
    applicationname = Column(String)
    applicationversion = Column(String)
    remoteaddress = Column(String)
    created = Column(DateTime)
    lastused = Column(DateTime)

    def __repr__(self):
        return f"<AccessToken {self.userid}:{self.deviceid}>"
