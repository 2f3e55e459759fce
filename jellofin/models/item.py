"""Library item model"""

from sqlalchemy import BigInteger, Column, Float, Integer, String, Text

from ..database import Base


class Item(Base):
    """Catalog item as last seen by the scanner, keyed by directory name"""

    __tablename__ = "items"

    id = Column(String, primary_key=True)
    name = Column(Text, nullable=False, index=True)
    votes = Column(Integer)
    year = Column(Integer)
    genre = Column(Text, nullable=False, default="")
    rating = Column(Float)
    nfotime = Column(BigInteger, nullable=False, default=0)
    firstvideo = Column(BigInteger, nullable=False, default=0)
    lastvideo = Column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<Item {self.id} - {self.name}>"
