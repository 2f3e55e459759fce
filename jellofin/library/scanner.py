"""Kodi style filesystem scanner

Walks a collection directory and builds Movie / Show entities from
file and directory naming conventions plus optional NFO sidecars.
"""

import os
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..services.log_service import log_service
from .entities import (
    COLLECTION_MOVIES,
    COLLECTION_SHOWS,
    CatalogItem,
    Collection,
    Episode,
    Movie,
    Season,
    Show,
    Subtitle,
)
from .idhash import id_hash, sort_name
from .metadata import FilenameMetadata, NfoMetadata

is_video = re.compile(r"^(.*)\.(divx|mov|mp4|MP4|m4u|m4v)$")
is_image = re.compile(r"^(.+)\.(jpg|jpeg|png|tbn)$")
is_image_ext = re.compile(r"^(jpg|jpeg|png|tbn)$")
is_season_img = re.compile(r"^season([0-9]+)-?([a-z]+|)\.(jpg|jpeg|png|tbn)$")
is_show_subdir = re.compile(r"^S([0-9]+)$|^Specials([0-9]*)$")
is_ext1 = re.compile(r"^(.*)()\.(png|jpg|jpeg|tbn|nfo|srt|vtt)$")
is_ext2 = re.compile(r"^(.*)[.-]([a-z]+)\.(png|jpg|jpeg|tbn|nfo|srt|vtt)$")
is_year = re.compile(r" \(([0-9]{4})\)$")

_episode_se = re.compile(r"(?i)S(\d+)\s*[._ ]?E(\d+)(?:\s*-?\s*E(\d+))?")
_episode_x = re.compile(r"(?i)(?:^|\D)(\d{1,2})x(\d{2,3})(?:-(\d{1,2})x(\d{2,3}))?")
_episode_e = re.compile(r"(?i)(?:^|[ ._-])E(?:p(?:isode)?)?\s*(\d+)(?:-E?(\d+))?")
_episode_num = re.compile(r"^(\d{1,3})(?:\D|$)")

UNKNOWN_LANGUAGE = "zz"


def parse_episode_name(
    name: str, season_hint: int = -1
) -> Optional[Tuple[int, int, bool]]:
    """Parse (season, episode, double) out of an episode file stem

    Recognizes S01E02, S01E02-E03, 1x02 and, inside a season
    directory, E02 or a leading episode number.
    """
    m = _episode_se.search(name)
    if m:
        return int(m.group(1)), int(m.group(2)), m.group(3) is not None
    m = _episode_x.search(name)
    if m:
        return int(m.group(1)), int(m.group(2)), m.group(3) is not None
    if season_hint < 0:
        return None
    m = _episode_e.search(name)
    if m:
        return season_hint, int(m.group(1)), m.group(2) is not None
    m = _episode_num.match(name)
    if m:
        return season_hint, int(m.group(1)), False
    return None


def _created(st: os.stat_result) -> Optional[datetime]:
    ts = getattr(st, "st_birthtime", None) or st.st_ctime
    if not ts:
        return None
    return datetime.fromtimestamp(ts, timezone.utc).replace(tzinfo=None)


def _skip(name: str) -> bool:
    return name.startswith(".") or name.startswith("+ ")


def _subtitle_lang(aux: str) -> str:
    if aux in ("", "und"):
        return UNKNOWN_LANGUAGE
    return aux


def synthesize_vtt(srt_subs: List[Subtitle], vtt_subs: List[Subtitle]):
    """Add a .vtt entry for every .srt that has no vtt counterpart"""
    existing = {s.path for s in vtt_subs}
    for sub in srt_subs:
        base, dot, _ = sub.path.rpartition(".")
        if not dot:
            continue
        path = base + ".vtt"
        if path not in existing:
            vtt_subs.append(Subtitle(lang=sub.lang, path=path))
            existing.add(path)


def _match_companion(name: str, base: str) -> Tuple[str, str]:
    """Classify a file next to a video as (aux, ext); ext is empty when unrelated"""
    aux = ext = ""
    s = is_ext1.match(name)
    if s:
        ext = s.group(3)
        if s.group(1) != base:
            aux = s.group(1)
    if s is None or s.group(1) != base:
        s2 = is_ext2.match(name)
        if s2 and s2.group(1) == base:
            aux, ext = s2.group(2), s2.group(3)
    return aux, ext


class Scanner:
    """Builds catalog items for one collection"""

    def __init__(self, pace: float = 0.0):
        # seconds to sleep between items
        self.pace = pace

    def scan(self, collection: Collection) -> List[CatalogItem]:
        """Scan every top-level directory of a collection"""
        try:
            entries = sorted(os.listdir(collection.directory))
        except OSError as e:
            log_service.error(f"Cannot read collection {collection.name}: {e}")
            return []

        items: List[CatalogItem] = []
        for name in entries:
            if _skip(name):
                continue
            try:
                if collection.type == COLLECTION_MOVIES:
                    item = self.build_movie(collection, name)
                elif collection.type == COLLECTION_SHOWS:
                    item = self.build_show(collection, name)
                else:
                    item = None
            except OSError as e:
                log_service.error(f"Skipping {collection.directory}/{name}: {e}")
                item = None
            if item is not None:
                items.append(item)
            if self.pace > 0:
                time.sleep(self.pace)
        return items

    def build_movie(self, collection: Collection, dirname: str) -> Optional[Movie]:
        directory = Path(collection.directory) / dirname
        if not directory.is_dir():
            return None

        files = sorted(os.scandir(directory), key=lambda e: e.name)
        base = video = ""
        size = 0
        created = None
        for entry in files:
            s = is_video.match(entry.name)
            if s and entry.is_file():
                st = entry.stat()
                video, base = s.group(0), s.group(1)
                size = st.st_size
                created = _created(st)
                break
        if not video:
            return None

        year = 0
        s = is_year.search(dirname)
        if s:
            year = int(s.group(1))
        if year == 0 and created is not None:
            year = created.year
        if year == 0:
            year = datetime.now().year

        movie = Movie(
            id=id_hash(dirname),
            name=dirname,
            sort_name=sort_name(dirname),
            path=dirname,
            base_url=collection.base_url,
            file_name=video,
            file_size=size,
            first_video=created,
            last_video=created,
        )

        metadata = None
        for entry in files:
            name = entry.name
            aux, ext = _match_companion(name, base)
            if not ext:
                continue

            if is_image.match(name):
                if ext == "tbn" and aux == "":
                    aux = "poster"
                if aux in ("banner", "fanart", "folder", "poster"):
                    setattr(movie, aux, name)
                continue

            if ext == "srt":
                movie.srt_subs.append(Subtitle(_subtitle_lang(aux), name))
            elif ext == "vtt":
                movie.vtt_subs.append(Subtitle(_subtitle_lang(aux), name))
            elif ext == "nfo" and aux == "" and metadata is None:
                metadata = NfoMetadata(directory / name)
                metadata.set_year(year)

        movie.metadata = metadata or FilenameMetadata(movie.name, year)
        synthesize_vtt(movie.srt_subs, movie.vtt_subs)
        return movie

    def build_show(self, collection: Collection, dirname: str) -> Optional[Show]:
        directory = Path(collection.directory) / dirname
        if not directory.is_dir():
            return None

        show = Show(
            id=id_hash(dirname),
            name=dirname,
            sort_name=sort_name(dirname),
            path=dirname,
            base_url=collection.base_url,
        )
        show.metadata = None
        self._scan_show_dir(show, directory, "", -1)

        for season in show.seasons:
            season.episodes = [ep for ep in season.episodes if ep.file_name]
            season.episodes.sort(key=lambda ep: (ep.episode_no, ep.file_name))
        show.seasons = [s for s in show.seasons if s.episodes]
        show.seasons.sort(key=lambda s: s.season_no)

        if show.seasons:
            show.first_video = show.seasons[0].episodes[0].created
            show.last_video = show.seasons[-1].episodes[-1].created

        has_nfo = show.metadata is not None
        if not ((has_nfo and (show.fanart or show.poster)) or show.seasons):
            return None

        year = show.first_video.year if show.first_video else 0
        if year == 0:
            year = datetime.now().year
        if show.metadata is None:
            show.metadata = FilenameMetadata(show.name, year)
        show.metadata.set_year(year)
        return show

    def _get_season(self, show: Show, season_no: int) -> Season:
        """Find a season by number, inserting it in order when missing"""
        for season in show.seasons:
            if season.season_no == season_no:
                return season

        name = id_hash(f"{show.name}-season-{season_no}")
        season = Season(
            id=id_hash(name),
            season_no=season_no,
            season_all_banner=show.season_all_banner,
            season_all_poster=show.season_all_poster,
        )
        index = 0
        while index < len(show.seasons) and show.seasons[index].season_no <= season_no:
            index += 1
        show.seasons.insert(index, season)
        return season

    def _scan_show_dir(self, show: Show, show_dir: Path, season_dir: str, season_hint: int):
        directory = show_dir / season_dir if season_dir else show_dir
        try:
            files = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            log_service.error(f"Cannot read {directory}: {e}")
            return

        def rel(name: str) -> str:
            return f"{season_dir}/{name}" if season_dir else name

        episodes: Dict[str, Episode] = {}

        for entry in files:
            fn = entry.name
            if _skip(fn):
                continue

            if season_hint < 0:
                s = is_show_subdir.match(fn)
                if s and entry.is_dir():
                    number = s.group(1) if s.group(1) is not None else s.group(2)
                    season_no = int(number) if s.group(1) is not None else 0
                    self._scan_show_dir(show, show_dir, fn, season_no)
                    continue

                if fn == "tvshow.nfo":
                    show.metadata = NfoMetadata(directory / fn)
                    continue

                s = is_image.match(fn)
                if s:
                    kind = s.group(1)
                    if kind == "season-all-banner":
                        show.season_all_banner = fn
                        for season in show.seasons:
                            season.season_all_banner = fn
                    elif kind == "season-all-poster":
                        show.season_all_poster = fn
                        for season in show.seasons:
                            season.season_all_poster = fn
                    elif kind == "season-specials-poster":
                        self._get_season(show, 0).poster = rel(fn)
                    elif kind == "clearlogo":
                        show.logo = fn
                    elif kind in ("banner", "fanart", "folder", "poster"):
                        setattr(show, kind, fn)
            else:
                s = is_image.match(fn)
                if s and s.group(1) in ("banner", "poster"):
                    setattr(self._get_season(show, season_hint), s.group(1), rel(fn))
                    continue

            s = is_season_img.match(fn)
            if s:
                season = self._get_season(show, int(s.group(1)))
                if s.group(2) == "banner":
                    season.banner = rel(fn)
                elif s.group(2) == "fanart":
                    season.fanart = rel(fn)
                else:
                    season.poster = rel(fn)
                continue

            s = is_video.match(fn)
            if s and entry.is_file():
                parsed = parse_episode_name(s.group(1), season_hint)
                if parsed is None:
                    continue
                season_no, episode_no, double = parsed
                st = entry.stat()
                episode = Episode(
                    id=id_hash(fn),
                    name=s.group(1),
                    season_no=season_no,
                    episode_no=episode_no,
                    double=double,
                    file_name=rel(fn),
                    base_name=s.group(1),
                    file_size=st.st_size,
                    created=_created(st),
                    metadata=FilenameMetadata(s.group(1), 0),
                )
                self._get_season(show, season_no).episodes.append(episode)
                episodes[s.group(1)] = episode

        for entry in files:
            name = entry.name
            match = None
            for pattern in (is_ext1, is_ext2):
                s = pattern.match(name)
                if s and s.group(1) in episodes:
                    match = s
                    break
            if match is None:
                continue

            episode = episodes[match.group(1)]
            aux, ext = match.group(2), match.group(3)
            path = rel(name)

            if is_image_ext.match(ext):
                if ext == "tbn" and aux == "":
                    aux = "thumb"
                if aux == "thumb":
                    episode.thumb = path
            elif ext == "srt":
                episode.srt_subs.append(Subtitle(_subtitle_lang(aux), path))
            elif ext == "vtt":
                episode.vtt_subs.append(Subtitle(_subtitle_lang(aux), path))
            elif ext == "nfo":
                episode.metadata = NfoMetadata(directory / name)

        for episode in episodes.values():
            synthesize_vtt(episode.srt_subs, episode.vtt_subs)
