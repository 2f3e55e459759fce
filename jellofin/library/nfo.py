"""Kodi NFO sidecar parsing"""

import html.entities
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..services.log_service import log_service
from .genre import normalize_genres

MULTI_EPISODE_TAG = b"<xbmcmultiepisode>"

_bare_ampersand = re.compile(r"&(?!#?\w+;)")
_xml_entities = {"amp", "lt", "gt", "quot", "apos"}


@dataclass
class Actor:
    name: str = ""
    role: str = ""
    thumb: str = ""


@dataclass
class UniqueId:
    type: str = ""
    default: bool = False
    value: str = ""


@dataclass
class VideoDetails:
    codec: str = "unknown"
    bitrate: int = 0
    aspect: float = 0.0
    width: int = 0
    height: int = 0
    framerate: float = 0.0
    durationinseconds: int = 0


@dataclass
class AudioDetails:
    codec: str = "unknown"
    bitrate: int = 0
    channels: int = 0
    language: str = ""


@dataclass
class Nfo:
    """Parsed NFO document, all fields optional"""

    title: str = ""
    id: str = ""
    runtime: int = 0
    mpaa: str = ""
    year: int = 0
    originaltitle: str = ""
    plot: str = ""
    tagline: str = ""
    premiered: str = ""
    season: str = ""
    episode: str = ""
    aired: str = ""
    studio: str = ""
    rating: float = 0.0
    votes: int = 0
    genre: List[str] = field(default_factory=list)
    actor: List[Actor] = field(default_factory=list)
    director: List[str] = field(default_factory=list)
    credits: List[str] = field(default_factory=list)
    uniqueid: List[UniqueId] = field(default_factory=list)
    thumb: str = ""
    fanart: List[str] = field(default_factory=list)
    video: VideoDetails = field(default_factory=VideoDetails)
    audio: AudioDetails = field(default_factory=AudioDetails)


def _int(value: Optional[str]) -> int:
    if not value:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        try:
            return int(float(value.strip()))
        except ValueError:
            return 0


def _float(value: Optional[str]) -> float:
    if not value:
        return 0.0
    try:
        return float(value.strip())
    except ValueError:
        return 0.0


def _text(el: Optional[ET.Element], tag: str) -> str:
    if el is None:
        return ""
    child = el.find(tag)
    if child is None:
        return ""
    return "".join(child.itertext()).strip()


def _texts(el: ET.Element, tag: str) -> List[str]:
    out = []
    for child in el.findall(tag):
        value = "".join(child.itertext()).strip()
        if value:
            out.append(value)
    return out


def _replace_entity(match: re.Match) -> str:
    name = match.group(1)
    if name in _xml_entities:
        return match.group(0)
    codepoint = html.entities.name2codepoint.get(name)
    if codepoint is None:
        return "&amp;" + name + ";"
    return chr(codepoint)


def _prepare(text: str) -> str:
    """Resolve HTML named entities and escape stray ampersands"""
    text = re.sub(r"&([A-Za-z][A-Za-z0-9]*);", _replace_entity, text)
    return _bare_ampersand.sub("&amp;", text)


def _parse_lenient(text: str) -> ET.Element:
    """Parse XML, keeping the tree built so far when the document is broken"""
    parser = ET.XMLPullParser(events=("start",))
    root = None
    try:
        parser.feed(text)
        for _, el in parser.read_events():
            if root is None:
                root = el
        parser.close()
    except ET.ParseError:
        # elements are attached to their parent on start, so the
        # prefix parsed before the error is a usable tree
        if root is None:
            raise
    if root is None:
        raise ET.ParseError("no root element")
    return root


def _video(el: Optional[ET.Element]) -> VideoDetails:
    details = VideoDetails()
    if el is None:
        return details
    details.codec = _text(el, "codec") or "unknown"
    details.bitrate = _int(_text(el, "bitrate"))
    details.aspect = _float(_text(el, "aspect"))
    details.width = _int(_text(el, "width"))
    details.height = _int(_text(el, "height"))
    details.framerate = _float(_text(el, "framerate"))
    details.durationinseconds = _int(_text(el, "durationinseconds"))
    return details


def _audio(el: Optional[ET.Element]) -> AudioDetails:
    details = AudioDetails()
    if el is None:
        return details
    details.codec = _text(el, "codec") or "unknown"
    details.bitrate = _int(_text(el, "bitrate"))
    details.channels = _int(_text(el, "channels"))
    details.language = _text(el, "language")
    return details


def decode_nfo(data: bytes, source: str = "") -> Nfo:
    """Decode NFO bytes into an Nfo

    Raises ET.ParseError when the document has no usable root element.
    """
    if data.startswith(MULTI_EPISODE_TAG):
        log_service.warning(
            f"{source}: multi-episode NFO, only the first episode is used"
        )
        data = data[len(MULTI_EPISODE_TAG):]

    text = data.decode("utf-8", errors="replace")
    root = _parse_lenient(_prepare(text))

    nfo = Nfo(
        title=_text(root, "title"),
        id=_text(root, "id"),
        runtime=_int(_text(root, "runtime")),
        mpaa=_text(root, "mpaa"),
        year=_int(_text(root, "year")),
        originaltitle=_text(root, "originaltitle"),
        plot=_text(root, "plot"),
        tagline=_text(root, "tagline"),
        premiered=_text(root, "premiered"),
        season=_text(root, "season"),
        episode=_text(root, "episode"),
        aired=_text(root, "aired"),
        studio=_text(root, "studio"),
        rating=_float(_text(root, "rating")),
        votes=_int(_text(root, "votes")),
        genre=normalize_genres(_texts(root, "genre")),
        director=_texts(root, "director"),
        credits=_texts(root, "credits"),
        thumb=_text(root, "thumb"),
    )

    for actor in root.findall("actor"):
        name = _text(actor, "name")
        if name:
            nfo.actor.append(
                Actor(name=name, role=_text(actor, "role"), thumb=_text(actor, "thumb"))
            )

    for uid in root.findall("uniqueid"):
        value = "".join(uid.itertext()).strip()
        nfo.uniqueid.append(
            UniqueId(
                type=uid.get("type", ""),
                default=uid.get("default", "").lower() in ("true", "1"),
                value=value,
            )
        )

    fanart = root.find("fanart")
    if fanart is not None:
        nfo.fanart = _texts(fanart, "thumb")

    details = root.find("fileinfo/streamdetails")
    if details is not None:
        nfo.video = _video(details.find("video"))
        nfo.audio = _audio(details.find("audio"))

    return nfo


def load_nfo(path: Path) -> Optional[Nfo]:
    """Read and decode an NFO file, None when missing or unreadable"""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        log_service.error(f"Cannot read NFO {path}: {e}")
        return None
    try:
        return decode_nfo(data, str(path))
    except ET.ParseError as e:
        log_service.error(f"Error parsing NFO file {path}: {e}")
        return None
