"""User, policy and session objects of the Jellyfin API"""

from typing import Optional

from ..library.idhash import id_hash
from ..services.state_store import AccessToken, User, UserProperties
from .items import format_time


def make_user_configuration(user: User) -> dict:
    props = user.properties
    return {
        "AudioLanguagePreference": "",
        "CastReceiverId": "F007D354",
        "DisplayCollectionsView": False,
        "DisplayMissingEpisodes": False,
        "EnableLocalPassword": False,
        "EnableNextEpisodeAutoPlay": True,
        "GroupedFolders": [],
        "HidePlayedInLatest": True,
        "LatestItemsExcludes": [],
        "MyMediaExcludes": list(props.my_media_excludes),
        "OrderedViews": list(props.ordered_views),
        "PlayDefaultAudioTrack": True,
        "RememberAudioSelections": True,
        "RememberSubtitleSelections": True,
        "SubtitleLanguagePreference": "",
        "SubtitleMode": "Default",
    }


def make_user_policy(user: User) -> dict:
    props = user.properties
    return {
        "AccessSchedules": [],
        "AllowedTags": list(props.allow_tags),
        "AuthenticationProviderId": "DefaultAuthenticationProvider",
        "BlockedChannels": [],
        "BlockedMediaFolders": [],
        "BlockedTags": list(props.block_tags),
        "BlockUnratedItems": [],
        "EnableAllChannels": False,
        "EnableAllDevices": True,
        "EnableAllFolders": props.enable_all_folders,
        "EnableContentDeletion": False,
        "EnableContentDeletionFromFolders": [],
        "EnableContentDownloading": props.enable_downloads,
        "EnabledChannels": [],
        "EnabledDevices": [],
        "EnabledFolders": list(props.enabled_folders),
        "EnableMediaPlayback": True,
        "EnableRemoteAccess": True,
        "EnableUserPreferenceAccess": True,
        "IsAdministrator": props.admin,
        "IsDisabled": props.disabled,
        "IsHidden": props.is_hidden,
        "PasswordResetProviderId": "DefaultPasswordResetProvider",
        "SyncPlayAccess": "CreateAndJoinGroups",
    }


def apply_user_configuration(config: dict, props: UserProperties):
    """Copy the settings we keep from a posted UserConfiguration"""
    props.my_media_excludes = [str(v) for v in config.get("MyMediaExcludes") or []]
    props.ordered_views = [str(v) for v in config.get("OrderedViews") or []]


def apply_user_policy(policy: dict, props: UserProperties):
    """Copy the settings we keep from a posted UserPolicy"""
    props.allow_tags = [str(v) for v in policy.get("AllowedTags") or []]
    props.block_tags = [str(v) for v in policy.get("BlockedTags") or []]
    props.enabled_folders = [str(v) for v in policy.get("EnabledFolders") or []]
    props.enable_all_folders = bool(policy.get("EnableAllFolders", props.enable_all_folders))
    props.enable_downloads = bool(
        policy.get("EnableContentDownloading", props.enable_downloads)
    )
    props.admin = bool(policy.get("IsAdministrator", props.admin))
    props.disabled = bool(policy.get("IsDisabled", props.disabled))
    props.is_hidden = bool(policy.get("IsHidden", props.is_hidden))


def make_user(user: User, server_id: str, has_image: bool = False) -> dict:
    item = {
        "Id": user.id,
        "Name": user.username,
        "ServerId": server_id,
        "HasPassword": True,
        "HasConfiguredPassword": True,
        "HasConfiguredEasyPassword": False,
        "EnableAutoLogin": False,
        "Configuration": make_user_configuration(user),
        "Policy": make_user_policy(user),
    }
    if user.last_login is not None:
        item["LastLoginDate"] = format_time(user.last_login)
    if user.last_used is not None:
        item["LastActivityDate"] = format_time(user.last_used)
    if has_image:
        item["PrimaryImageTag"] = user.id
    return item


def session_id(token: AccessToken) -> str:
    """Stable session id for a token, never the token itself"""
    return id_hash("session-" + token.token)


def make_session_info(token: AccessToken, username: str, server_id: str,
                      remote_address: Optional[str] = None) -> dict:
    return {
        "Id": session_id(token),
        "UserId": token.user_id,
        "UserName": username,
        "ServerId": server_id,
        "LastActivityDate": format_time(token.last_used),
        "RemoteEndPoint": remote_address if remote_address is not None else token.remote_address,
        "DeviceName": token.device_name,
        "DeviceId": token.device_id,
        "Client": token.application_name,
        "ApplicationVersion": token.application_version,
        "IsActive": True,
        "SupportsMediaControl": False,
        "SupportsRemoteControl": False,
        "HasCustomDeviceName": False,
        "AdditionalUsers": [],
        "PlayState": {"CanSeek": False, "RepeatMode": "RepeatNone", "PlaybackOrder": "Default"},
        "Capabilities": {
            "PlayableMediaTypes": [],
            "SupportedCommands": [],
            "SupportsPersistentIdentifier": True,
        },
        "NowPlayingQueue": [],
        "NowPlayingQueueFullItems": [],
        "SupportedCommands": [],
        "PlayableMediaTypes": [],
    }


def make_device(token: AccessToken, username: str) -> dict:
    return {
        "Id": token.device_id,
        "Name": token.device_name,
        "CustomName": token.device_name,
        "AppName": token.application_name,
        "AppVersion": token.application_version,
        "LastUserId": token.user_id,
        "LastUserName": username,
        "DateLastActivity": format_time(token.last_used),
        "Capabilities": {
            "PlayableMediaTypes": [],
            "SupportedCommands": [],
            "SupportsMediaControl": False,
            "SupportsPersistentIdentifier": True,
        },
    }
