"""Jellyfin item (BaseItemDto) construction from the catalog and user state

Items are plain dicts shaped the way Jellyfin clients expect them. All
timestamps are rendered with a fixed width so that they sort and compare
as strings.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from ..library.catalog import Catalog
from ..library.entities import (
    COLLECTION_MOVIES,
    CatalogItem,
    Collection,
    Episode,
    Movie,
    Season,
    Show,
    Subtitle,
)
from ..library.idhash import id_hash, person_sort_name
from ..services.state_store import Playlist, StateStore, UserData, utcnow
from . import ids
from .errors import ERR_ITEM_NOT_FOUND, JellyfinError

ZERO_TIME = "0001-01-01T00:00:00.000000Z"
TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

TICKS_PER_SECOND = 10_000_000
DEFAULT_DURATION = 3600

# Poster and backdrop aspect ratios clients lay out grids with
POSTER_ASPECT_RATIO = 0.6666666666666666
FOLDER_ASPECT_RATIO = 1.7777777777777777

# Video is stream 0, audio stream 1, external subtitles follow
SUBTITLE_STREAM_OFFSET = 2

IMAGE_PRIMARY = "Primary"
IMAGE_TYPE_COLLECTION = "primary"


def format_time(dt: Optional[datetime]) -> str:
    if dt is None:
        return ZERO_TIME
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.strftime(TIME_FORMAT)


def now_time() -> str:
    return format_time(utcnow())


def item_duration(entity) -> int:
    """Playing time in seconds of a movie or episode, an hour when unknown"""
    duration = entity.duration()
    return duration if duration > 0 else DEFAULT_DURATION


def ticks(seconds: int) -> int:
    return seconds * TICKS_PER_SECOND


def _video_codec(codec: str):
    codec = codec.lower()
    if codec in ("avc", "x264", "h264"):
        return "h264", "avc1"
    if codec in ("x265", "h265", "hevc"):
        return "hevc", "hvc1"
    if codec == "vc1":
        return "vc1", "wvc1"
    return "unknown", "unknown"


def _audio_codec(codec: str):
    codec = codec.lower()
    if codec == "ac3":
        return "ac3", "ac-3"
    if codec == "aac":
        return "aac", "mp4a"
    if codec == "wma":
        return "wmapro", "wmapro"
    return "unknown", "unknown"


CHANNEL_LAYOUTS = {
    1: ("Mono", "mono"),
    2: ("Stereo", "stereo"),
    3: ("2.1 Channel", "3.0"),
    4: ("3.1 Channel", "4.0"),
    5: ("4.1 Channel", "5.0"),
    6: ("5.1 Channel", "5.1"),
    8: ("7.1 Channel", "7.1"),
}


def subtitle_url(item_id: str, media_source_id: str, index: int) -> str:
    return f"/Videos/{item_id}/{media_source_id}/Subtitles/{index}/0/Stream.vtt"


def make_media_streams(item_id: str, media_source_id: str, metadata, subtitles: List[Subtitle]) -> List[dict]:
    """Video, audio and external subtitle streams synthesized from metadata"""
    codec, codec_tag = _video_codec(metadata.video_codec())
    frame_rate = metadata.video_frame_rate()
    language = metadata.audio_language()
    video = {
        "Index": 0,
        "Type": "Video",
        "Codec": codec,
        "CodecTag": codec_tag,
        "Title": codec.upper(),
        "DisplayTitle": f"{codec.upper()} - SDR",
        "IsDefault": True,
        "IsExternal": False,
        "Language": language,
        "AverageFrameRate": frame_rate,
        "RealFrameRate": frame_rate,
        "RefFrames": 1,
        "TimeBase": "1/16000",
        "Height": metadata.video_height(),
        "Width": metadata.video_width(),
        "AspectRatio": "2.35:1",
        "VideoRange": "SDR",
        "VideoRangeType": "SDR",
        "Profile": "High",
        "BitDepth": 8,
        "BitRate": metadata.video_bitrate(),
        "AudioSpatialFormat": "None",
        "IsInterlaced": False,
        "SupportsExternalStream": False,
    }

    audio_codec, audio_tag = _audio_codec(metadata.audio_codec())
    channels = metadata.audio_channels()
    title, layout = CHANNEL_LAYOUTS.get(channels, ("Unknown", "unknown"))
    audio = {
        "Index": 1,
        "Type": "Audio",
        "Codec": audio_codec,
        "CodecTag": audio_tag,
        "Title": title,
        "DisplayTitle": f"{title} - {audio_codec.upper()}",
        "Language": language,
        "TimeBase": "1/48000",
        "SampleRate": 48000,
        "Channels": channels,
        "ChannelLayout": layout,
        "IsDefault": True,
        "IsExternal": False,
        "Profile": "LC",
        "BitRate": metadata.audio_bitrate(),
        "AudioSpatialFormat": "None",
        "SupportsExternalStream": False,
    }

    streams = [video, audio]
    for n, sub in enumerate(subtitles):
        index = SUBTITLE_STREAM_OFFSET + n
        streams.append(
            {
                "Index": index,
                "Type": "Subtitle",
                "Codec": "webvtt",
                "Language": sub.lang,
                "Title": sub.lang,
                "DisplayTitle": sub.lang.upper(),
                "IsDefault": False,
                "IsExternal": True,
                "IsTextSubtitleStream": True,
                "SupportsExternalStream": True,
                "DeliveryMethod": "External",
                "DeliveryUrl": subtitle_url(item_id, media_source_id, index),
                "Path": sub.path,
            }
        )
    return streams


def make_media_source(item_id: str, file_name: str, file_size: int, duration: int,
                      metadata, subtitles: List[Subtitle]) -> dict:
    media_source_id = id_hash(file_name)
    streams = make_media_streams(item_id, media_source_id, metadata, subtitles)
    return {
        "Id": media_source_id,
        "ETag": media_source_id,
        "Name": file_name,
        "Path": file_name,
        "Type": "Default",
        "Container": "mp4",
        "Protocol": "File",
        "VideoType": "VideoFile",
        "Size": file_size,
        "IsRemote": False,
        "SupportsTranscoding": False,
        "SupportsDirectStream": True,
        "SupportsDirectPlay": True,
        "SupportsProbing": True,
        "IsInfiniteStream": False,
        "RequiresOpening": False,
        "RequiresClosing": False,
        "TranscodingSubProtocol": "http",
        "RunTimeTicks": ticks(duration),
        "Bitrate": metadata.video_bitrate() + metadata.audio_bitrate(),
        "DefaultAudioStreamIndex": 1,
        "MediaStreams": streams,
        "MediaAttachments": [],
        "Formats": [],
    }


def make_user_data(item_id: str, data: Optional[UserData]) -> dict:
    data = data or UserData()
    return {
        "Key": f"user/{item_id}",
        "ItemId": item_id,
        "IsFavorite": data.favorite,
        "LastPlayedDate": format_time(data.timestamp),
        "PlaybackPositionTicks": ticks(data.position),
        "PlayedPercentage": data.played_percentage,
        "Played": data.played,
        "PlayCount": data.play_count,
    }


def _provider_ids(metadata) -> Dict[str, str]:
    provider_ids = {}
    for key, value in metadata.provider_ids().items():
        if key == "imdb":
            provider_ids["Imdb"] = value
        elif key in ("tmdb", "themoviedb"):
            provider_ids["Tmdb"] = value
        elif key == "tvdb":
            provider_ids["Tvdb"] = value
    return provider_ids


class ItemBuilder:
    """
    Builds Jellyfin items for one user.

    The user's data entries are snapshotted once per request so that show
    and season rollups over many episodes stay cheap.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: StateStore,
        server_id: str,
        user_id: str,
        user_data: Optional[Dict[str, UserData]] = None,
        playlists: Optional[List[Playlist]] = None,
        collection_images: Optional[Set[str]] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.server_id = server_id
        self.user_id = user_id
        self.user_data = user_data or {}
        self.playlists = playlists or []
        self.collection_images = collection_images or set()

    @classmethod
    async def for_user(cls, catalog: Catalog, store: StateStore, server_id: str, user_id: str):
        user_data = await store.get_all_user_data(user_id)
        playlists = await store.get_playlists(user_id)
        collection_images = set()
        for c in catalog.collections():
            cid = ids.make_collection_id(c.id)
            if await store.has_image(cid, IMAGE_TYPE_COLLECTION) is not None:
                collection_images.add(cid)
        return cls(catalog, store, server_id, user_id, user_data, playlists, collection_images)

    def _data(self, key: str) -> Optional[UserData]:
        return self.user_data.get(key)

    # Folders

    def root(self) -> dict:
        root_id = ids.make_root_id()
        details = self.catalog.details()
        return {
            "Name": "Media Folders",
            "ServerId": self.server_id,
            "Id": root_id,
            "Etag": id_hash(root_id),
            "DateCreated": now_time(),
            "Type": "UserRootFolder",
            "IsFolder": True,
            "CanDelete": False,
            "CanDownload": False,
            "SortName": "media folders",
            "Path": "/root",
            "ChildCount": len(self.collection_root_overview()),
            "Genres": details.genres,
            "GenreItems": self.genre_items(details.genres),
            "DisplayPreferencesId": ids.make_display_preferences_id(root_id),
            "PrimaryImageAspectRatio": FOLDER_ASPECT_RATIO,
            "LocationType": "FileSystem",
            "MediaType": "Unknown",
            "PlayAccess": "Full",
            "ImageTags": {},
            "BackdropImageTags": [],
            "UserData": make_user_data(root_id, None),
        }

    def collection_root_overview(self) -> List[dict]:
        """Collections, then the favorites and playlist folders"""
        items = [self.collection(c) for c in self.catalog.collections()]
        items.append(self.favorites_collection())
        items.append(self.playlist_collection())
        return items

    def _folder(self, item_id: str, name: str, item_type: str, collection_type: str,
                child_count: int, path: str) -> dict:
        now = now_time()
        return {
            "Name": name,
            "ServerId": self.server_id,
            "Id": item_id,
            "ParentId": ids.make_root_id(),
            "Etag": id_hash(item_id),
            "DateCreated": now,
            "PremiereDate": now,
            "Type": item_type,
            "CollectionType": collection_type,
            "SortName": collection_type,
            "IsFolder": True,
            "CanDelete": False,
            "CanDownload": True,
            "Path": path,
            "ChildCount": child_count,
            "DisplayPreferencesId": ids.make_display_preferences_id(item_id),
            "PrimaryImageAspectRatio": FOLDER_ASPECT_RATIO,
            "LocationType": "FileSystem",
            "MediaType": "Unknown",
            "PlayAccess": "Full",
            "EnableMediaSourceDisplay": True,
            "ImageTags": {},
            "BackdropImageTags": [],
            "UserData": make_user_data(item_id, self._data(ids.trim_prefix(item_id))),
        }

    def collection(self, c: Collection) -> dict:
        item_id = ids.make_collection_id(c.id)
        collection_type = "movies" if c.type == COLLECTION_MOVIES else "tvshows"
        item = self._folder(item_id, c.name, "CollectionFolder", collection_type,
                            len(c.items), "/collection")
        genres: List[str] = []
        for i in c.items:
            for g in i.genres():
                if g not in genres:
                    genres.append(g)
        item["Genres"] = genres
        item["GenreItems"] = self.genre_items(genres)
        if item_id in self.collection_images:
            item["ImageTags"] = {IMAGE_PRIMARY: item_id}
        return item

    def favorites_collection(self) -> dict:
        item_id = ids.make_favorites_id()
        favorites = [k for k, d in self.user_data.items() if d.favorite]
        return self._folder(item_id, "Favorites", "UserView", "playlists",
                            len(favorites), "/collection")

    def playlist_collection(self) -> dict:
        item_id = ids.make_playlist_collection_id()
        count = sum(len(p.item_ids) for p in self.playlists)
        return self._folder(item_id, "Playlists", "UserView", "playlists", count, "/collection")

    def playlist(self, playlist: Playlist) -> dict:
        item_id = ids.make_playlist_id(playlist.id)
        now = now_time()
        return {
            "Name": playlist.name,
            "ServerId": self.server_id,
            "Id": item_id,
            "ParentId": ids.make_playlist_collection_id(),
            "Etag": id_hash(item_id),
            "DateCreated": now,
            "PremiereDate": now,
            "Type": "Playlist",
            "SortName": playlist.name,
            "IsFolder": True,
            "CanDelete": True,
            "CanDownload": False,
            "Path": "/playlist",
            "ChildCount": len(playlist.item_ids),
            "RecursiveItemCount": len(playlist.item_ids),
            "LocationType": "FileSystem",
            "MediaType": "Video",
            "PlayAccess": "Full",
            "ImageTags": {},
            "BackdropImageTags": [],
            "UserData": make_user_data(item_id, None),
        }

    def playlist_overview(self) -> List[dict]:
        return [self.playlist(p) for p in self.playlists]

    def playlist_items(self, playlist: Playlist) -> List[dict]:
        """Items of a playlist in playlist order, dangling ids skipped"""
        return self.hydrate(playlist.item_ids)

    # Catalog entities

    def genre_items(self, genres: List[str]) -> List[dict]:
        return [{"Name": g, "Id": ids.make_genre_id(g)} for g in genres]

    def studio_items(self, studios: List[str]) -> List[dict]:
        return [{"Name": s, "Id": ids.make_studio_id(s)} for s in studios]

    def people(self, metadata) -> List[dict]:
        people = []
        for name, role in metadata.actors().items():
            people.append(self._person_ref(name, role, "Actor"))
        for name in metadata.directors():
            people.append(self._person_ref(name, "Director", "Director"))
        for name in metadata.writers():
            people.append(self._person_ref(name, "Screenplay", "Writer"))
        return people

    @staticmethod
    def _person_ref(name: str, role: str, person_type: str) -> dict:
        person_id = ids.make_person_id(name)
        return {
            "Name": name,
            "Id": person_id,
            "Role": role,
            "Type": person_type,
            "PrimaryImageTag": person_id,
        }

    def _common(self, c: Collection, item: CatalogItem) -> dict:
        metadata = item.metadata
        genres = item.genres()
        title = metadata.title() or item.name
        tagline = metadata.tagline()
        images = {}
        if item.poster:
            images[IMAGE_PRIMARY] = item.id
        if item.fanart:
            images["Backdrop"] = item.id
        if item.logo:
            images["Logo"] = item.id
        return {
            "Name": title,
            "OriginalTitle": title,
            "ServerId": self.server_id,
            "Id": item.id,
            "ParentId": ids.make_collection_id(c.id),
            "Etag": id_hash(item.id),
            "SortName": item.sort_name,
            "ForcedSortName": item.sort_name,
            "Overview": metadata.plot(),
            "Taglines": [tagline] if tagline else [],
            "Genres": genres,
            "GenreItems": self.genre_items(genres),
            "Studios": self.studio_items(metadata.studios()),
            "Tags": [],
            "OfficialRating": item.official_rating(),
            "CommunityRating": item.rating(),
            "ProductionYear": item.year(),
            "ProviderIds": _provider_ids(metadata),
            "People": self.people(metadata),
            "ImageTags": images,
            "BackdropImageTags": [item.id] if item.fanart else [],
            "PrimaryImageAspectRatio": POSTER_ASPECT_RATIO,
            "LocationType": "FileSystem",
            "PlayAccess": "Full",
            "CanDelete": False,
            "CanDownload": True,
            "Chapters": [],
            "ExternalUrls": [],
            "RemoteTrailers": [],
            "Trickplay": {},
            "LockedFields": [],
        }

    def movie(self, c: Collection, movie: Movie) -> dict:
        item = self._common(c, movie)
        metadata = movie.metadata
        duration = item_duration(movie)
        height = metadata.video_height()
        source = make_media_source(movie.id, movie.file_name, movie.file_size, duration,
                                   metadata, movie.vtt_subs)
        premiered = metadata.premiered() or movie.created
        item.update(
            {
                "Type": "Movie",
                "IsFolder": False,
                "MediaType": "Video",
                "VideoType": "VideoFile",
                "Container": "mov,mp4,m4a",
                "DateCreated": format_time(movie.created),
                "PremiereDate": format_time(premiered),
                "RunTimeTicks": ticks(duration),
                "IsHD": height >= 720,
                "Is4K": height >= 1500,
                "Width": metadata.video_width(),
                "Height": height,
                "HasSubtitles": bool(movie.vtt_subs),
                "MediaSources": [source],
                "MediaStreams": source["MediaStreams"],
                "UserData": make_user_data(movie.id, self._data(movie.id)),
            }
        )
        return item

    def _rollup(self, item_id: str, episodes: List[Episode]) -> dict:
        """UserData aggregated over a list of episodes"""
        total = len(episodes)
        played = 0
        last_played = None
        for ep in episodes:
            data = self._data(ep.id)
            if data is None or not data.played:
                continue
            played += 1
            if data.timestamp and (last_played is None or data.timestamp > last_played):
                last_played = data.timestamp
        user_data = make_user_data(item_id, self._data(ids.trim_prefix(item_id)))
        user_data.update(
            {
                "UnplayedItemCount": total - played,
                "PlayedPercentage": 100 * played // total if total else 0,
                "LastPlayedDate": format_time(last_played),
                "Played": user_data["Played"] or (total > 0 and played == total),
            }
        )
        return user_data

    def show(self, c: Collection, show: Show) -> dict:
        item = self._common(c, show)
        episodes = show.episodes()
        premiered = show.metadata.premiered() or show.first_video
        item.update(
            {
                "Type": "Series",
                "IsFolder": True,
                "MediaType": "Unknown",
                "DateCreated": format_time(show.first_video),
                "PremiereDate": format_time(premiered),
                "ChildCount": len(show.seasons),
                "RecursiveItemCount": len(episodes),
                "UserData": self._rollup(show.id, episodes),
            }
        )
        return item

    def season(self, c: Collection, show: Show, season: Season) -> dict:
        season_id = ids.make_season_id(season.id)
        first = season.episodes[0] if season.episodes else None
        premiered = None
        if first is not None:
            premiered = first.metadata.premiered() or first.created
        specials = season.season_no == 0
        images = {}
        if season.poster_image():
            images[IMAGE_PRIMARY] = season.id
        return {
            "Name": season.name,
            "ServerId": self.server_id,
            "Id": season_id,
            "ParentId": show.id,
            "SeriesId": show.id,
            "SeriesName": show.metadata.title() or show.name,
            "ParentLogoItemId": show.id,
            "Etag": id_hash(season_id),
            "Type": "Season",
            "IsFolder": True,
            "MediaType": "Unknown",
            "LocationType": "FileSystem",
            "PlayAccess": "Full",
            "IndexNumber": season.season_no,
            "SortName": "9999" if specials else f"{season.season_no:04d}",
            "DateCreated": format_time(first.created if first else show.first_video),
            "PremiereDate": format_time(premiered),
            "ChildCount": len(season.episodes),
            "RecursiveItemCount": len(season.episodes),
            "ImageTags": images,
            "BackdropImageTags": [show.id] if show.fanart else [],
            "PrimaryImageAspectRatio": POSTER_ASPECT_RATIO,
            "UserData": self._rollup(season_id, season.episodes),
        }

    def episode(self, c: Collection, show: Show, season: Season, episode: Episode) -> dict:
        episode_id = ids.make_episode_id(episode.id)
        metadata = episode.metadata
        show_meta = show.metadata
        genres = metadata.genres() or show.genres()
        studios = metadata.studios() or show_meta.studios()
        duration = item_duration(episode)
        height = metadata.video_height()
        source = make_media_source(episode_id, episode.file_name, episode.file_size, duration,
                                   metadata, episode.vtt_subs)
        premiered = metadata.premiered() or show_meta.premiered() or episode.created
        images = {IMAGE_PRIMARY: episode.id} if episode.thumb else {}
        return {
            "Name": metadata.title() or episode.base_name,
            "ServerId": self.server_id,
            "Id": episode_id,
            "ParentId": ids.make_season_id(season.id),
            "SeasonId": ids.make_season_id(season.id),
            "SeasonName": season.name,
            "SeriesId": show.id,
            "SeriesName": show_meta.title() or show.name,
            "ParentLogoItemId": show.id,
            "ParentBackdropItemId": show.id,
            "ParentBackdropImageTags": [show.id] if show.fanart else [],
            "Etag": id_hash(episode_id),
            "Type": "Episode",
            "IsFolder": False,
            "MediaType": "Video",
            "VideoType": "VideoFile",
            "Container": "mov,mp4,m4a",
            "LocationType": "FileSystem",
            "PlayAccess": "Full",
            "CanDownload": True,
            "SortName": episode.sort_name,
            "ParentIndexNumber": season.season_no,
            "IndexNumber": episode.episode_no,
            "Overview": metadata.plot(),
            "Genres": genres,
            "GenreItems": self.genre_items(genres),
            "Studios": self.studio_items(studios),
            "OfficialRating": metadata.official_rating(),
            # ratings are the episode's own, never the show's
            "CommunityRating": metadata.rating(),
            "ProductionYear": metadata.year() or show.year(),
            "ProviderIds": _provider_ids(metadata),
            "People": self.people(metadata),
            "DateCreated": format_time(episode.created),
            "PremiereDate": format_time(premiered),
            "RunTimeTicks": ticks(duration),
            "IsHD": height >= 720,
            "Is4K": height >= 1500,
            "Width": metadata.video_width(),
            "Height": height,
            "HasSubtitles": bool(episode.vtt_subs),
            "ImageTags": images,
            "BackdropImageTags": [],
            "MediaSources": [source],
            "MediaStreams": source["MediaStreams"],
            "UserData": make_user_data(episode_id, self._data(episode.id)),
        }

    def catalog_item(self, c: Collection, item: CatalogItem) -> dict:
        if isinstance(item, Movie):
            return self.movie(c, item)
        return self.show(c, item)

    def genre(self, name: str, count: int = 0) -> dict:
        genre_id = ids.make_genre_id(name)
        now = now_time()
        return {
            "Name": name,
            "ServerId": self.server_id,
            "Id": genre_id,
            "Etag": genre_id,
            "Type": "Genre",
            "SortName": name.lower(),
            "DateCreated": now,
            "PremiereDate": now,
            "IsFolder": True,
            "LocationType": "FileSystem",
            "MediaType": "Unknown",
            "ChildCount": count or 1,
            "ImageTags": {},
            "BackdropImageTags": [],
            "UserData": make_user_data(genre_id, None),
        }

    def studio(self, name: str, count: int = 0) -> dict:
        item = self.genre(name, count)
        studio_id = ids.make_studio_id(name)
        item.update(
            {
                "Id": studio_id,
                "Etag": studio_id,
                "Type": "Studio",
                "UserData": make_user_data(studio_id, None),
            }
        )
        return item

    def person(self, name: str, movie_count: int = 0, series_count: int = 0,
               episode_count: int = 0) -> dict:
        person_id = ids.make_person_id(name)
        return {
            "Name": name,
            "ServerId": self.server_id,
            "Id": person_id,
            "Etag": id_hash(person_id),
            "Type": "Person",
            "SortName": person_sort_name(name),
            "DateCreated": now_time(),
            "IsFolder": False,
            "LocationType": "FileSystem",
            "MediaType": "Unknown",
            "MovieCount": movie_count,
            "SeriesCount": series_count,
            "EpisodeCount": episode_count,
            "ImageTags": {},
            "BackdropImageTags": [],
            "UserData": make_user_data(person_id, None),
        }

    # Lookups

    def all_items(self) -> List[dict]:
        return [self.catalog_item(c, i) for c in self.catalog.collections() for i in c.items]

    def collection_items(self, collection_id: str) -> List[dict]:
        c = self.catalog.get_collection(collection_id)
        if c is None:
            raise JellyfinError(404, "Collection not found")
        return [self.catalog_item(c, i) for i in c.items]

    def seasons_overview(self, show_id: str) -> List[dict]:
        """Seasons of a show by number, specials last"""
        c, show = self.catalog.get_item(show_id)
        if show is None or not isinstance(show, Show):
            raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
        seasons = sorted(show.seasons, key=lambda s: (s.season_no == 0, s.season_no))
        return [self.season(c, show, s) for s in seasons]

    def episodes_overview(self, season_id: str) -> List[dict]:
        c, show, season = self.catalog.get_season(ids.trim_prefix(season_id))
        if season is None:
            raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
        return [self.episode(c, show, season, ep) for ep in season.episodes]

    def show_episodes(self, show_id: str) -> List[dict]:
        c, show = self.catalog.get_item(show_id)
        if show is None or not isinstance(show, Show):
            raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
        return [self.episode(c, show, s, ep) for s in show.seasons for ep in s.episodes]

    def favorites_overview(self) -> List[dict]:
        items = []
        for key, data in self.user_data.items():
            if not data.favorite:
                continue
            item = self.resolve_key(key)
            if item is not None:
                items.append(item)
        return items

    def resolve_key(self, key: str) -> Optional[dict]:
        """Item for a bare (unprefixed) catalog id: movie, show, season or episode"""
        c, item = self.catalog.get_item(key)
        if item is not None:
            return self.catalog_item(c, item)
        c, show, season, episode = self.catalog.get_episode(key)
        if episode is not None:
            return self.episode(c, show, season, episode)
        c, show, season = self.catalog.get_season(key)
        if season is not None:
            return self.season(c, show, season)
        return None

    def find_playlist(self, item_id: str) -> Optional[Playlist]:
        playlist_id = ids.trim_prefix(item_id)
        for p in self.playlists:
            if p.id == playlist_id:
                return p
        return None

    def _filter_all(self, predicate) -> List[dict]:
        return [i for i in self.all_items() if predicate(i)]

    def items_by_parent(self, parent_id: str) -> List[dict]:
        """Children of any folder-like id"""
        if ids.is_favorites_id(parent_id):
            return self.favorites_overview()
        if ids.is_playlist_collection_id(parent_id):
            return self.playlist_overview()
        if ids.is_playlist_id(parent_id):
            playlist = self.find_playlist(parent_id)
            if playlist is None:
                raise JellyfinError(404, "Playlist not found")
            return self.playlist_items(playlist)
        if ids.is_genre_id(parent_id):
            return self._filter_all(
                lambda i: any(g["Id"] == parent_id for g in i.get("GenreItems", []))
            )
        if ids.is_studio_id(parent_id):
            return self._filter_all(
                lambda i: any(s["Id"] == parent_id for s in i.get("Studios", []))
            )
        if ids.is_collection_id(parent_id):
            return self.collection_items(ids.trim_prefix(parent_id))
        if ids.is_root_id(parent_id):
            return self.collection_root_overview()
        if ids.is_season_id(parent_id):
            return self.episodes_overview(parent_id)
        _, item = self.catalog.get_item(parent_id)
        if isinstance(item, Show):
            return self.seasons_overview(parent_id)
        raise JellyfinError(404, ERR_ITEM_NOT_FOUND)

    def item_by_id(self, item_id: str) -> dict:
        """Any item by its external id"""
        if ids.is_root_id(item_id):
            return self.root()
        if ids.is_favorites_id(item_id):
            return self.favorites_collection()
        if ids.is_playlist_collection_id(item_id):
            return self.playlist_collection()
        if ids.is_collection_id(item_id):
            c = self.catalog.get_collection(ids.trim_prefix(item_id))
            if c is None:
                raise JellyfinError(404, "Collection not found")
            return self.collection(c)
        if ids.is_playlist_id(item_id):
            playlist = self.find_playlist(item_id)
            if playlist is None:
                raise JellyfinError(404, "Playlist not found")
            return self.playlist(playlist)
        if ids.is_season_id(item_id):
            c, show, season = self.catalog.get_season(ids.trim_prefix(item_id))
            if season is None:
                raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
            return self.season(c, show, season)
        if ids.is_episode_id(item_id):
            c, show, season, episode = self.catalog.get_episode(ids.trim_prefix(item_id))
            if episode is None:
                raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
            return self.episode(c, show, season, episode)
        try:
            if ids.is_genre_id(item_id):
                name = ids.decode_genre_id(item_id)
                return self.genre(name, self.catalog.genre_item_count().get(name, 0))
            if ids.is_studio_id(item_id):
                name = ids.decode_studio_id(item_id)
                return self.studio(name, self.catalog.studio_item_count().get(name, 0))
            if ids.is_person_id(item_id):
                return self.person(ids.decode_person_id(item_id))
        except ValueError:
            raise JellyfinError(400, "Invalid item id")
        c, item = self.catalog.get_item(item_id)
        if item is None:
            raise JellyfinError(404, ERR_ITEM_NOT_FOUND)
        return self.catalog_item(c, item)

    def hydrate(self, item_ids: List[str]) -> List[dict]:
        """Items for a list of ids in the given order, unknown ids skipped"""
        items = []
        for item_id in item_ids:
            item = self.resolve_key(ids.trim_prefix(item_id))
            if item is not None:
                items.append(item)
        return items
