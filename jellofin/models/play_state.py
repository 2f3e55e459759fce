"""Play state model"""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String

from ..database import Base


class PlayState(Base):
    """Per user, per item playback position and flags"""

    __tablename__ = "playstate"

    userid = Column(String, primary_key=True)
    itemid = Column(String, primary_key=True)
    position = Column(BigInteger, default=0)  # seconds
    playedpercentage = Column(Integer, default=0)
    played = Column(Boolean, default=False)
    playcount = Column(Integer, default=0)
    favorite = Column(Boolean, default=False)
    timestamp = Column(DateTime)

    def __repr__(self):
        return f"<PlayState {self.userid}:{self.itemid}>"
