"""Authentication service"""

import hashlib
import io
import secrets
from typing import Optional, Tuple

from passlib.context import CryptContext
from PIL import Image, ImageDraw

from ..library.idhash import id_hash
from .log_service import log_service
from .state_store import (
    AccessToken,
    ImageMetadata,
    NotFoundError,
    StateStore,
    User,
    UserProperties,
    utcnow,
)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

IMAGE_TYPE_PROFILE = "profile"

logger = log_service.get_logger("auth")


class AuthError(Exception):
    """Credentials rejected"""


def generate_identicon(seed: str, size: int = 512) -> Tuple[ImageMetadata, bytes]:
    """Mirrored 5x5 PNG avatar derived from a seed string"""
    digest = hashlib.sha256(seed.encode()).digest()
    img = Image.new("RGBA", (size, size), (240, 240, 240, 255))
    draw = ImageDraw.Draw(img)
    color = (digest[0], digest[1], digest[2], 255)

    grid = 5
    cell = size // grid
    index = 3  # first three bytes are the colour
    for y in range(grid):
        for x in range((grid + 1) // 2):
            if digest[index] % 2 == 0:
                for cx in (x, grid - 1 - x):
                    draw.rectangle(
                        [cx * cell, y * cell, (cx + 1) * cell - 1, (y + 1) * cell - 1],
                        fill=color,
                    )
            index += 1

    out = io.BytesIO()
    img.save(out, "PNG")
    data = out.getvalue()
    meta = ImageMetadata(
        mime_type="image/png",
        file_size=len(data),
        etag=id_hash(hashlib.sha256(data).hexdigest()),
        updated=utcnow(),
    )
    return meta, data


class AuthService:
    """Authentication and user management service"""

    def __init__(self, store: StateStore):
        self.store = store

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify password against hash"""
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            return False

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Hash password"""
        return pwd_context.hash(password)

    @staticmethod
    def new_token() -> str:
        return secrets.token_hex(16)

    async def create_user(self, username: str, password: str, admin: bool = False) -> User:
        """Create new user with an identicon profile image"""
        username = username.lower()
        user = User(
            id=id_hash(username),
            username=username,
            password=self.get_password_hash(password),
            created=utcnow(),
            properties=UserProperties(admin=admin),
        )
        await self.store.upsert_user(user)
        logger.info(f"Created user {username}")

        meta, data = generate_identicon(username)
        try:
            await self.store.store_image(user.id, IMAGE_TYPE_PROFILE, meta, data)
        except Exception as e:
            logger.warning(f"Could not store avatar for {username}: {e}")
        return user

    async def authenticate_user(
        self, username: str, password: str, autoregister: bool = False
    ) -> User:
        """Check credentials, registering unknown users when allowed"""
        username = username.lower()
        user = await self.store.get_user(username)
        if user is None:
            if not autoregister:
                raise AuthError("Unknown user")
            # first user on a fresh server gets admin rights
            first = not await self.store.get_all_users()
            user = await self.create_user(username, password, admin=first)
        elif not self.verify_password(password, user.password):
            raise AuthError("Invalid password")

        if user.properties.disabled:
            raise AuthError("User disabled")

        user.last_login = utcnow()
        user.last_used = user.last_login
        await self.store.upsert_user(user)
        return user

    async def issue_token(
        self,
        user: User,
        device_id: str = "",
        device_name: str = "",
        client: str = "",
        version: str = "",
        remote_address: str = "",
    ) -> AccessToken:
        """Issue a fresh token, revoking the one this device held before"""
        if device_id:
            previous: Optional[AccessToken] = await self.store.get_access_token_by_device_id(
                user.id, device_id
            )
            if previous is not None:
                try:
                    await self.store.delete_access_token(previous.token)
                except NotFoundError:
                    pass

        now = utcnow()
        token = AccessToken(
            token=self.new_token(),
            user_id=user.id,
            device_id=device_id,
            device_name=device_name,
            application_name=client,
            application_version=version,
            remote_address=remote_address,
            created=now,
            last_used=now,
        )
        await self.store.upsert_access_token(token)
        return token
