"""Persistent per-user state with write-behind caches"""

import asyncio
import copy
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..database import Database
from ..library.idhash import random_id
from ..models import (
    AccessToken as AccessTokenRow,
    Image as ImageRow,
    Item as ItemRow,
    PlayState,
    Playlist as PlaylistRow,
    PlaylistItem,
    QuickConnect as QuickConnectRow,
    User as UserRow,
    UserProperty,
)
from .log_service import log_service

logger = log_service.get_logger("db")


class StateStoreError(Exception):
    """Base class for state store errors"""


class NotFoundError(StateStoreError):
    """Requested record does not exist"""


class ConflictError(StateStoreError):
    """Unique constraint violated"""


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite hands back"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class UserProperties:
    admin: bool = False
    disabled: bool = False
    is_hidden: bool = True
    enable_all_folders: bool = True
    enable_downloads: bool = True
    enabled_folders: List[str] = field(default_factory=list)
    allow_tags: List[str] = field(default_factory=list)
    block_tags: List[str] = field(default_factory=list)
    my_media_excludes: List[str] = field(default_factory=list)
    ordered_views: List[str] = field(default_factory=list)

    def encode(self) -> Dict[str, str]:
        encoded = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool):
                encoded[f.name] = "1" if value else "0"
            elif isinstance(value, list):
                encoded[f.name] = ",".join(value)
            else:
                encoded[f.name] = str(value)
        return encoded

    @classmethod
    def decode(cls, rows: Dict[str, Optional[str]]) -> "UserProperties":
        props = cls()
        for f in fields(props):
            if f.name not in rows:
                continue
            raw = rows[f.name] or ""
            current = getattr(props, f.name)
            if isinstance(current, bool):
                setattr(props, f.name, raw == "1")
            elif isinstance(current, list):
                setattr(props, f.name, [v for v in raw.split(",") if v])
            else:
                setattr(props, f.name, raw)
        return props


@dataclass
class User:
    id: str
    username: str
    password: str
    created: Optional[datetime] = None
    last_login: Optional[datetime] = None
    last_used: Optional[datetime] = None
    properties: UserProperties = field(default_factory=UserProperties)


@dataclass
class AccessToken:
    token: str
    user_id: str
    device_id: str = ""
    device_name: str = ""
    application_name: str = ""
    application_version: str = ""
    remote_address: str = ""
    created: Optional[datetime] = None
    last_used: Optional[datetime] = None


@dataclass
class UserData:
    position: int = 0  # seconds
    played_percentage: int = 0
    play_count: int = 0
    played: bool = False
    favorite: bool = False
    timestamp: Optional[datetime] = None


@dataclass
class Playlist:
    id: str
    user_id: str
    name: str
    item_ids: List[str] = field(default_factory=list)


@dataclass
class QuickConnectCode:
    device_id: str
    secret: str
    code: str
    user_id: str = ""
    authorized: bool = False
    created: Optional[datetime] = None


@dataclass
class ImageMetadata:
    mime_type: str
    file_size: int
    etag: str
    updated: Optional[datetime] = None


@dataclass
class ItemRecord:
    id: str
    name: str
    votes: int = 0
    year: int = 0
    genre: str = ""
    rating: float = 0.0
    nfotime: int = 0
    firstvideo: int = 0
    lastvideo: int = 0


def _user_from_row(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        password=row.password,
        created=row.created,
        last_login=row.lastlogin,
        last_used=row.lastused,
        properties=UserProperties.decode({p.key: p.value for p in row.properties}),
    )


def _token_from_row(row: AccessTokenRow) -> AccessToken:
    return AccessToken(
        token=row.token,
        user_id=row.userid,
        device_id=row.deviceid or "",
        device_name=row.devicename or "",
        application_name=row.applicationname or "",
        application_version=row.applicationversion or "",
        remote_address=row.remoteaddress or "",
        created=row.created,
        last_used=row.lastused,
    )


def _token_values(t: AccessToken) -> dict:
    return {
        "token": t.token,
        "userid": t.user_id,
        "deviceid": t.device_id,
        "devicename": t.device_name,
        "applicationname": t.application_name,
        "applicationversion": t.application_version,
        "remoteaddress": t.remote_address,
        "created": t.created,
        "lastused": t.last_used,
    }


def _quick_connect_from_row(row: QuickConnectRow) -> QuickConnectCode:
    return QuickConnectCode(
        device_id=row.deviceid,
        secret=row.secret,
        code=row.code,
        user_id=row.userid,
        authorized=row.authorized,
        created=row.created,
    )


class StateStore:
    """
    Users, access tokens, user data, playlists, quickconnect codes and images.

    Access tokens and user data are served from in-memory caches guarded by
    one asyncio lock; flush_access_tokens() and flush_user_data() persist
    entries changed since their last successful run. Callers always receive
    copies.
    """

    def __init__(self, db: Database):
        self.db = db
        self._lock = asyncio.Lock()
        self._tokens: Dict[str, AccessToken] = {}
        self._user_data: Dict[Tuple[str, str], UserData] = {}
        self._tokens_synced = utcnow()
        self._user_data_synced = utcnow()

    async def load(self):
        """Prime both caches from the database"""
        async with self.db.read_session() as session:
            states = (await session.execute(select(PlayState))).scalars().all()
            tokens = (await session.execute(select(AccessTokenRow))).scalars().all()

        async with self._lock:
            for s in states:
                self._user_data[(s.userid, s.itemid)] = UserData(
                    position=s.position or 0,
                    played_percentage=s.playedpercentage or 0,
                    play_count=s.playcount or 0,
                    played=bool(s.played),
                    favorite=bool(s.favorite),
                    timestamp=s.timestamp,
                )
            for t in tokens:
                self._tokens[t.token] = _token_from_row(t)
            now = utcnow()
            self._tokens_synced = now
            self._user_data_synced = now
        logger.info(f"Loaded {len(states)} playstate entries and {len(tokens)} access tokens")

    # Users

    async def get_user(self, username: str) -> Optional[User]:
        async with self.db.read_session() as session:
            result = await session.execute(
                select(UserRow).where(UserRow.username == username)
            )
            row = result.scalar_one_or_none()
            return _user_from_row(row) if row else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        async with self.db.read_session() as session:
            row = await session.get(UserRow, user_id)
            return _user_from_row(row) if row else None

    async def get_all_users(self) -> List[User]:
        async with self.db.read_session() as session:
            result = await session.execute(select(UserRow).order_by(UserRow.username))
            return [_user_from_row(row) for row in result.scalars().all()]

    async def upsert_user(self, user: User):
        """Insert or replace a user and its properties in one transaction"""
        values = {
            "id": user.id,
            "username": user.username,
            "password": user.password,
            "created": user.created,
            "lastlogin": user.last_login,
            "lastused": user.last_used,
        }
        async with self.db.write_session() as session:
            try:
                stmt = insert(UserRow).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[UserRow.id],
                    set_={k: v for k, v in values.items() if k != "id"},
                )
                await session.execute(stmt)

                await session.execute(
                    delete(UserProperty).where(UserProperty.userid == user.id)
                )
                for key, value in user.properties.encode().items():
                    session.add(UserProperty(userid=user.id, key=key, value=value))
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError(f"User {user.username} already exists") from e

    async def delete_user(self, user_id: str):
        """Delete a user; properties cascade, tokens are removed"""
        async with self.db.write_session() as session:
            result = await session.execute(delete(UserRow).where(UserRow.id == user_id))
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError(f"User {user_id} not found")
            await session.execute(
                delete(AccessTokenRow).where(AccessTokenRow.userid == user_id)
            )
            await session.commit()

        async with self._lock:
            for token in [k for k, v in self._tokens.items() if v.user_id == user_id]:
                del self._tokens[token]

    # Access tokens

    async def get_access_token(self, token: str) -> Optional[AccessToken]:
        """Look up a token, cache first, and mark it as used"""
        async with self._lock:
            cached = self._tokens.get(token)
            if cached is not None:
                cached.last_used = utcnow()
                return copy.deepcopy(cached)

        async with self.db.read_session() as session:
            row = await session.get(AccessTokenRow, token)
            if row is None:
                return None
            found = _token_from_row(row)

        async with self._lock:
            found.last_used = utcnow()
            self._tokens.setdefault(token, found)
            return copy.deepcopy(self._tokens[token])

    async def get_access_tokens(self, user_id: str) -> List[AccessToken]:
        async with self.db.read_session() as session:
            result = await session.execute(
                select(AccessTokenRow).where(AccessTokenRow.userid == user_id)
            )
            tokens = {row.token: _token_from_row(row) for row in result.scalars().all()}

        async with self._lock:
            for token, cached in self._tokens.items():
                if cached.user_id == user_id:
                    tokens[token] = copy.deepcopy(cached)
        return sorted(tokens.values(), key=lambda t: t.last_used or datetime.min, reverse=True)

    async def get_access_token_by_device_id(
        self, user_id: str, device_id: str
    ) -> Optional[AccessToken]:
        for t in await self.get_access_tokens(user_id):
            if t.device_id == device_id:
                return t
        return None

    async def upsert_access_token(self, token: AccessToken):
        """Persist a token immediately and cache it"""
        values = _token_values(token)
        async with self.db.write_session() as session:
            stmt = insert(AccessTokenRow).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[AccessTokenRow.token],
                set_={k: v for k, v in values.items() if k != "token"},
            )
            await session.execute(stmt)
            await session.commit()

        async with self._lock:
            self._tokens[token.token] = copy.deepcopy(token)

    async def update_access_token(self, token: AccessToken):
        """Change cached token details; persisted by the next flush"""
        async with self._lock:
            updated = copy.deepcopy(token)
            updated.last_used = utcnow()
            self._tokens[token.token] = updated

    async def delete_access_token(self, token: str):
        async with self._lock:
            self._tokens.pop(token, None)

        async with self.db.write_session() as session:
            result = await session.execute(
                delete(AccessTokenRow).where(AccessTokenRow.token == token)
            )
            await session.commit()
            if result.rowcount == 0:
                raise NotFoundError("Access token not found")

    async def flush_access_tokens(self) -> int:
        """Write tokens used since the last flush"""
        async with self._lock:
            dirty = [
                copy.deepcopy(t)
                for t in self._tokens.values()
                if t.last_used and t.last_used > self._tokens_synced
            ]
        if not dirty:
            return 0

        try:
            async with self.db.write_session() as session:
                async with session.begin():
                    for t in dirty:
                        values = _token_values(t)
                        stmt = insert(AccessTokenRow).values(**values)
                        stmt = stmt.on_conflict_do_update(
                            index_elements=[AccessTokenRow.token],
                            set_={k: v for k, v in values.items() if k != "token"},
                        )
                        await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error writing access tokens to db: {e}")
            return 0

        async with self._lock:
            self._tokens_synced = max(t.last_used for t in dirty)
        return len(dirty)

    # User data

    async def get_user_data(self, user_id: str, item_id: str) -> UserData:
        async with self._lock:
            data = self._user_data.get((user_id, item_id))
            if data is None:
                raise NotFoundError(f"No user data for {item_id}")
            return copy.deepcopy(data)

    async def get_all_user_data(self, user_id: str) -> Dict[str, UserData]:
        """Snapshot of every cached entry of one user, keyed by item id"""
        async with self._lock:
            return {
                item_id: copy.deepcopy(data)
                for (uid, item_id), data in self._user_data.items()
                if uid == user_id
            }

    async def update_user_data(self, user_id: str, item_id: str, data: UserData) -> UserData:
        async with self._lock:
            stored = copy.deepcopy(data)
            stored.timestamp = utcnow()
            self._user_data[(user_id, item_id)] = stored
            return copy.deepcopy(stored)

    async def get_favorites(self, user_id: str) -> List[str]:
        async with self._lock:
            return [
                item_id
                for (uid, item_id), data in self._user_data.items()
                if uid == user_id and data.favorite
            ]

    async def get_recently_watched(
        self, user_id: str, include_fully_watched: bool, count: int = 10
    ) -> List[str]:
        """Most recently touched items that are partially watched"""
        async with self._lock:
            entries = [
                (data.timestamp or datetime.min, item_id)
                for (uid, item_id), data in self._user_data.items()
                if uid == user_id
                and (
                    include_fully_watched
                    or (not data.played and 0 < data.played_percentage < 100)
                )
            ]
        entries.sort(reverse=True)
        return [item_id for _, item_id in entries[:count]]

    async def flush_user_data(self) -> int:
        """Write entries changed since the last flush in one transaction"""
        async with self._lock:
            dirty = [
                (key, copy.deepcopy(data))
                for key, data in self._user_data.items()
                if data.timestamp and data.timestamp > self._user_data_synced
            ]
        if not dirty:
            return 0

        try:
            async with self.db.write_session() as session:
                async with session.begin():
                    for (user_id, item_id), data in dirty:
                        values = {
                            "userid": user_id,
                            "itemid": item_id,
                            "position": data.position,
                            "playedpercentage": data.played_percentage,
                            "played": data.played,
                            "playcount": data.play_count,
                            "favorite": data.favorite,
                            "timestamp": data.timestamp,
                        }
                        stmt = insert(PlayState).values(**values)
                        stmt = stmt.on_conflict_do_update(
                            index_elements=[PlayState.userid, PlayState.itemid],
                            set_={
                                k: v
                                for k, v in values.items()
                                if k not in ("userid", "itemid")
                            },
                        )
                        await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error writing playstate to db: {e}")
            return 0

        async with self._lock:
            self._user_data_synced = max(data.timestamp for _, data in dirty)
        return len(dirty)

    # Playlists

    async def create_playlist(self, user_id: str, name: str, item_ids: List[str]) -> str:
        """Create a playlist under a fresh random id"""
        playlist_id = random_id()
        now = utcnow()
        async with self.db.write_session() as session:
            async with session.begin():
                session.add(
                    PlaylistRow(id=playlist_id, name=name, userid=user_id, timestamp=now)
                )
                seen = set()
                for order, item_id in enumerate(item_ids, start=1):
                    if item_id in seen:
                        continue
                    seen.add(item_id)
                    session.add(
                        PlaylistItem(
                            playlistid=playlist_id,
                            itemid=item_id,
                            itemorder=order,
                            timestamp=now,
                        )
                    )
        return playlist_id

    async def _playlist_item_ids(self, session, playlist_id: str) -> List[str]:
        result = await session.execute(
            select(PlaylistItem.itemid)
            .where(PlaylistItem.playlistid == playlist_id)
            .order_by(PlaylistItem.itemorder)
        )
        return list(result.scalars().all())

    async def get_playlists(self, user_id: str) -> List[Playlist]:
        async with self.db.read_session() as session:
            result = await session.execute(
                select(PlaylistRow).where(PlaylistRow.userid == user_id).order_by(PlaylistRow.name)
            )
            playlists = []
            for row in result.scalars().all():
                playlists.append(
                    Playlist(
                        id=row.id,
                        user_id=row.userid,
                        name=row.name,
                        item_ids=await self._playlist_item_ids(session, row.id),
                    )
                )
            return playlists

    async def get_playlist(self, user_id: str, playlist_id: str) -> Optional[Playlist]:
        async with self.db.read_session() as session:
            row = await session.get(PlaylistRow, playlist_id)
            if row is None or row.userid != user_id:
                return None
            return Playlist(
                id=row.id,
                user_id=row.userid,
                name=row.name,
                item_ids=await self._playlist_item_ids(session, row.id),
            )

    async def _owned_playlist(self, session, user_id: str, playlist_id: str) -> PlaylistRow:
        row = await session.get(PlaylistRow, playlist_id)
        if row is None or row.userid != user_id:
            raise NotFoundError(f"Playlist {playlist_id} not found")
        return row

    async def add_items_to_playlist(self, user_id: str, playlist_id: str, item_ids: List[str]):
        """Append items; an item already present keeps its position"""
        async with self.db.write_session() as session:
            async with session.begin():
                await self._owned_playlist(session, user_id, playlist_id)
                for item_id in item_ids:
                    next_order = select(
                        func.coalesce(func.max(PlaylistItem.itemorder), 0) + 1
                    ).where(PlaylistItem.playlistid == playlist_id).scalar_subquery()
                    stmt = insert(PlaylistItem).values(
                        playlistid=playlist_id,
                        itemid=item_id,
                        itemorder=next_order,
                        timestamp=utcnow(),
                    )
                    await session.execute(stmt.on_conflict_do_nothing())

    async def delete_items_from_playlist(
        self, user_id: str, playlist_id: str, item_ids: List[str]
    ):
        async with self.db.write_session() as session:
            async with session.begin():
                await self._owned_playlist(session, user_id, playlist_id)
                await session.execute(
                    delete(PlaylistItem).where(
                        PlaylistItem.playlistid == playlist_id,
                        PlaylistItem.itemid.in_(item_ids),
                    )
                )

    async def move_playlist_item(
        self, user_id: str, playlist_id: str, item_id: str, new_index: int
    ):
        """Move an item to a zero-based position and renumber the list"""
        async with self.db.write_session() as session:
            async with session.begin():
                await self._owned_playlist(session, user_id, playlist_id)
                item_ids = await self._playlist_item_ids(session, playlist_id)
                if item_id not in item_ids:
                    raise NotFoundError(f"Item {item_id} not in playlist")
                item_ids.remove(item_id)
                new_index = max(0, min(new_index, len(item_ids)))
                item_ids.insert(new_index, item_id)
                for order, iid in enumerate(item_ids, start=1):
                    await session.execute(
                        update(PlaylistItem)
                        .where(
                            PlaylistItem.playlistid == playlist_id,
                            PlaylistItem.itemid == iid,
                        )
                        .values(itemorder=order)
                    )

    async def rename_playlist(self, user_id: str, playlist_id: str, name: str):
        async with self.db.write_session() as session:
            async with session.begin():
                row = await self._owned_playlist(session, user_id, playlist_id)
                row.name = name
                row.timestamp = utcnow()

    # Items

    async def upsert_item(self, item: ItemRecord) -> str:
        """Store scanner details; an existing row with the same name keeps its id"""
        async with self.db.write_session() as session:
            async with session.begin():
                result = await session.execute(
                    select(ItemRow).where(ItemRow.name == item.name).limit(1)
                )
                row = result.scalar_one_or_none()
                if row is None:
                    row = ItemRow(id=item.id, name=item.name)
                    session.add(row)
                row.votes = item.votes
                row.year = item.year
                row.genre = item.genre
                row.rating = item.rating
                row.nfotime = item.nfotime
                row.firstvideo = item.firstvideo
                row.lastvideo = item.lastvideo
                return row.id

    async def get_item_by_name(self, name: str) -> Optional[ItemRecord]:
        async with self.db.read_session() as session:
            result = await session.execute(
                select(ItemRow).where(ItemRow.name == name).limit(1)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return ItemRecord(
                id=row.id,
                name=row.name,
                votes=row.votes or 0,
                year=row.year or 0,
                genre=row.genre or "",
                rating=row.rating or 0.0,
                nfotime=row.nfotime or 0,
                firstvideo=row.firstvideo or 0,
                lastvideo=row.lastvideo or 0,
            )

    # QuickConnect

    async def upsert_quick_connect(self, qc: QuickConnectCode):
        values = {
            "deviceid": qc.device_id,
            "secret": qc.secret,
            "userid": qc.user_id,
            "authorized": qc.authorized,
            "code": qc.code,
            "created": qc.created or utcnow(),
        }
        async with self.db.write_session() as session:
            stmt = insert(QuickConnectRow).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[QuickConnectRow.deviceid, QuickConnectRow.secret],
                set_={
                    k: v for k, v in values.items() if k not in ("deviceid", "secret")
                },
            )
            await session.execute(stmt)
            await session.commit()

    async def get_quick_connect_by_code(self, code: str) -> Optional[QuickConnectCode]:
        async with self.db.read_session() as session:
            result = await session.execute(
                select(QuickConnectRow)
                .where(QuickConnectRow.code == code)
                .order_by(QuickConnectRow.created.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _quick_connect_from_row(row) if row else None

    async def get_quick_connect_by_secret(self, secret: str) -> Optional[QuickConnectCode]:
        async with self.db.read_session() as session:
            result = await session.execute(
                select(QuickConnectRow).where(QuickConnectRow.secret == secret).limit(1)
            )
            row = result.scalar_one_or_none()
            return _quick_connect_from_row(row) if row else None

    # Images

    async def has_image(self, item_id: str, image_type: str) -> Optional[ImageMetadata]:
        async with self.db.read_session() as session:
            result = await session.execute(
                select(
                    ImageRow.mimetype, ImageRow.filesize, ImageRow.etag, ImageRow.updated
                ).where(ImageRow.itemid == item_id, ImageRow.type == image_type)
            )
            row = result.first()
            if row is None:
                return None
            return ImageMetadata(
                mime_type=row.mimetype, file_size=row.filesize, etag=row.etag, updated=row.updated
            )

    async def get_image(
        self, item_id: str, image_type: str
    ) -> Optional[Tuple[ImageMetadata, bytes]]:
        async with self.db.read_session() as session:
            row = await session.get(ImageRow, (item_id, image_type))
            if row is None:
                return None
            meta = ImageMetadata(
                mime_type=row.mimetype, file_size=row.filesize, etag=row.etag, updated=row.updated
            )
            return meta, row.data

    async def store_image(
        self, item_id: str, image_type: str, meta: ImageMetadata, data: bytes
    ):
        values = {
            "itemid": item_id,
            "type": image_type,
            "mimetype": meta.mime_type,
            "etag": meta.etag,
            "updated": meta.updated or utcnow(),
            "filesize": meta.file_size,
            "data": data,
        }
        async with self.db.write_session() as session:
            stmt = insert(ImageRow).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ImageRow.itemid, ImageRow.type],
                set_={k: v for k, v in values.items() if k not in ("itemid", "type")},
            )
            await session.execute(stmt)
            await session.commit()

    async def delete_image(self, item_id: str, image_type: str):
        async with self.db.write_session() as session:
            result = await session.execute(
                delete(ImageRow).where(
                    ImageRow.itemid == item_id, ImageRow.type == image_type
                )
            )
            await session.commit()
            if result.rowcount == 0:
                raise NotFoundError(f"No {image_type} image for {item_id}")
