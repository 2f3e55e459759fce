"""Playlist models"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from ..database import Base


class Playlist(Base):
    """User playlist"""

    __tablename__ = "playlist"

    id = Column(String, primary_key=True)
    name = Column(Text, nullable=False)
    userid = Column(String, nullable=False, index=True)
    timestamp = Column(DateTime)

    def __repr__(self):
        return f"<Playlist {self.id} - {self.name}>"


class PlaylistItem(Base):
    __tablename__ = "playlist_item"

    playlistid = Column(
        String, ForeignKey("playlist.id", ondelete="CASCADE"), primary_key=True
    )
    itemid = Column(String, primary_key=True)
    itemorder = Column(Integer, nullable=False)
    timestamp = Column(DateTime)

    def __repr__(self):
        return f"<PlaylistItem {self.playlistid}:{self.itemid} #{self.itemorder}>"
