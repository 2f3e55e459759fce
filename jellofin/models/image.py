"""Stored image model"""

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String

from ..database import Base


class Image(Base):
    """Image blob uploaded for a user profile or collection"""

    __tablename__ = "images"

    itemid = Column(String, primary_key=True)
    type = Column(String, primary_key=True)
    mimetype = Column(String, nullable=False)
    etag = Column(String, nullable=False)
    updated = Column(DateTime, nullable=False)
    filesize = Column(Integer, nullable=False)
    data = Column(LargeBinary, nullable=False)

    def __repr__(self):
        return f"<Image {self.itemid}:{self.type} {self.mimetype}>"
