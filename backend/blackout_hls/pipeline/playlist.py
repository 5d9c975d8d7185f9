"""HLS playlist rendering and rewriting."""
import math
from pathlib import Path
from typing import Dict, List, Mapping

from blackout_hls.errors import InputError
from blackout_hls.pipeline.artifacts import blackout_name, segment_name
from blackout_hls.pipeline.segment_planner import Segment

NORMAL_PLAYLIST = "output.m3u8"
REDACTED_PLAYLIST = "blackout.m3u8"
PLAYLIST_EXTENSION = ".m3u8"


def target_duration(segments: List[Segment]) -> int:
    """EXT-X-TARGETDURATION: the longest segment, rounded up."""
    return math.ceil(max(s.duration for s in segments))


def render_playlist(segments: List[Segment], redacted: bool = False) -> str:
    """
    Render a VOD playlist referencing one chunk per segment.

    The normal playlist always points at segment_NNN chunks. The redacted
    playlist points at blackout_NNN where the segment is a blackout and at
    segment_NNN everywhere else.
    """
    if not segments:
        raise InputError("Cannot render a playlist for an empty timeline")

    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        f"#EXT-X-TARGETDURATION:{target_duration(segments)}",
        "#EXT-X-MEDIA-SEQUENCE:0",
        "#EXT-X-PLAYLIST-TYPE:VOD",
    ]

    for index, segment in enumerate(segments):
        lines.append(f"#EXTINF:{segment.duration:.6f},")
        if redacted and segment.is_blackout:
            lines.append(blackout_name(index))
        else:
            lines.append(segment_name(index))

    lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines)


def write_playlists(segments: List[Segment], output_dir: str | Path) -> Dict[str, Path]:
    """Write both playlists next to the chunks, keyed by file name."""
    output_dir = Path(output_dir)
    paths = {}
    for name, redacted in ((NORMAL_PLAYLIST, False), (REDACTED_PLAYLIST, True)):
        path = output_dir / name
        path.write_text(render_playlist(segments, redacted=redacted), encoding="utf-8")
        paths[name] = path
    return paths


def rewrite_playlist(content: str, url_map: Mapping[str, str]) -> str:
    """
    Replace chunk names with their published URLs.

    Only lines that are exactly a known name are replaced; everything else
    passes through. Rewriting an already rewritten playlist changes nothing.
    """
    lines = []
    for line in content.split("\n"):
        url = url_map.get(line.strip())
        lines.append(url if url is not None else line)
    return "\n".join(lines)


def localize_playlist(content: str, url_prefix: str) -> str:
    """Strip a published URL prefix so the playlist references local names again."""
    if not url_prefix:
        return content
    return "\n".join(
        line[len(url_prefix):] if line.startswith(url_prefix) else line
        for line in content.split("\n")
    )


def is_playlist(name: str) -> bool:
    return name.endswith(PLAYLIST_EXTENSION)
