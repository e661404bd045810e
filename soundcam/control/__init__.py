"""Zone debouncing and playback control."""
from .debouncer import ZoneDebouncer
from .music_player import MusicPlayer, PlaylistConfig, Track, format_time

__all__ = ["MusicPlayer", "PlaylistConfig", "Track", "ZoneDebouncer", "format_time"]
