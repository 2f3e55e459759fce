"""SubRip to WebVTT conversion"""

import re
from pathlib import Path

_timestamp = re.compile(r"(\d{2}:\d{2}:\d{2}),(\d{3})")


def srt_to_vtt(text: str) -> str:
    """Convert SubRip text; cue numbers are kept, WebVTT allows them"""
    text = text.lstrip("﻿").replace("\r\n", "\n").replace("\r", "\n")
    return "WEBVTT\n\n" + _timestamp.sub(r"\1.\2", text)


def read_vtt(vtt_path: Path) -> bytes:
    """WebVTT contents of a subtitle, converting the .srt next to it when needed"""
    if vtt_path.exists():
        return vtt_path.read_bytes()
    srt_path = vtt_path.with_suffix(".srt")
    raw = srt_path.read_bytes()
    return srt_to_vtt(raw.decode("utf-8", errors="replace")).encode("utf-8")
