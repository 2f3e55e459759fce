"""Authentication and user management request bodies"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class JellyfinBody(BaseModel):
    """Request bodies use Jellyfin's PascalCase keys; extra keys are ignored"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AuthenticateByName(JellyfinBody):
    """Username and password login"""

    Username: Optional[str] = None
    Pw: Optional[str] = None


class AuthenticateWithQuickConnect(JellyfinBody):
    """Login with the secret of an authorized QuickConnect code"""

    Secret: Optional[str] = None


class CreateUserByName(JellyfinBody):
    Name: Optional[str] = None
    Password: Optional[str] = None


class UpdateUserPassword(JellyfinBody):
    """Password change; admins may reset another user's password without CurrentPw"""

    CurrentPw: Optional[str] = None
    NewPw: Optional[str] = None
    ResetPassword: bool = False
