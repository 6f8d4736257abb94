"""
Media stream container used for remote tracks and by capture backends.
"""
from typing import Iterable, List, Optional

from .protocols import MediaTrack


class TrackStream:
    """Ordered set of tracks satisfying the MediaStream protocol."""

    def __init__(self, tracks: Optional[Iterable[MediaTrack]] = None):
        self._tracks: List[MediaTrack] = []
        for track in tracks or ():
            self.add_track(track)

    def add_track(self, track: MediaTrack) -> None:
        if track not in self._tracks:
            self._tracks.append(track)

    def get_tracks(self) -> List[MediaTrack]:
        return list(self._tracks)

    def get_audio_tracks(self) -> List[MediaTrack]:
        return [t for t in self._tracks if t.kind == "audio"]

    def get_video_tracks(self) -> List[MediaTrack]:
        return [t for t in self._tracks if t.kind == "video"]

    def __len__(self) -> int:
        return len(self._tracks)
