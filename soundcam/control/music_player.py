"""
Music Player Module
===================

Playlist playback driven by zone actions.

Uses pygame.mixer.music for MP3/OGG/WAV streaming. If the mixer cannot be
initialized (no audio device), the player runs in silent mode: playlist
navigation and play/pause state still work, only the sound is missing.
"""

import logging
import math
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

import pygame

from ..core.events import EventBus, Events
from ..core.types import ActionEvent, PlaybackAction

logger = logging.getLogger(__name__)


@dataclass
class Track:
    """A playlist entry."""
    title: str
    artist: str
    path: str

    @classmethod
    def from_dict(cls, entry: dict, directory: str = "") -> "Track":
        path = entry.get("path") or entry.get("file", "")
        if directory and path and not os.path.isabs(path):
            path = os.path.join(directory, path)
        return cls(
            title=entry.get("title", os.path.splitext(os.path.basename(path))[0]),
            artist=entry.get("artist", "Unknown artist"),
            path=path,
        )


@dataclass
class PlaylistConfig:
    """Playlist and mixer settings."""
    directory: str = "music"
    tracks: List[Track] = field(default_factory=list)
    volume: float = 0.8
    frequency: int = 44100
    buffer: int = 4096

    @classmethod
    def from_dict(cls, config: dict, base_dir: str = "") -> "PlaylistConfig":
        """Create config from the `playlist` section; relative paths resolve against base_dir."""
        directory = config.get("directory", "music")
        if base_dir and not os.path.isabs(directory):
            directory = os.path.join(base_dir, directory)
        return cls(
            directory=directory,
            tracks=[Track.from_dict(t, directory) for t in config.get("tracks", [])],
            volume=config.get("volume", 0.8),
            frequency=config.get("frequency", 44100),
            buffer=config.get("buffer", 4096),
        )


class MusicPlayer:
    """
    Playback controller consuming zone actions.

    Example:
        >>> player = MusicPlayer(PlaylistConfig.from_dict(cfg["playlist"]))
        >>> detector.add_callback(player.notify)
        >>> while running:
        ...     player.update()   # auto-advance when a track ends
    """

    def __init__(self, config: Optional[PlaylistConfig] = None,
                 event_bus: Optional[EventBus] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config or PlaylistConfig()
        self._bus = event_bus
        self._clock = clock
        self._playlist: List[Track] = list(self.config.tracks)
        self._index = 0
        self._playing = False
        self._loaded_path: Optional[str] = None
        self._durations: Dict[str, float] = {}
        self._duration_thread: Optional[threading.Thread] = None

        # Elapsed time bookkeeping (pygame's get_pos resets on every play())
        self._elapsed_before = 0.0
        self._resumed_at: Optional[float] = None

        self._actions = {
            PlaybackAction.PREVIOUS: self.previous_track,
            PlaybackAction.NEXT: self.next_track,
            PlaybackAction.PLAY: self.play,
            PlaybackAction.PAUSE: self.pause,
        }

        self._audio_available = self._init_mixer()
        if not self._playlist:
            logger.warning("Playlist is empty; playback actions will be ignored")

    def _init_mixer(self) -> bool:
        try:
            pygame.mixer.pre_init(frequency=self.config.frequency, size=-16,
                                  channels=2, buffer=self.config.buffer)
            pygame.mixer.init()
            pygame.mixer.music.set_volume(self.config.volume)
        except pygame.error as e:
            logger.warning("Audio initialization failed (%s); running in silent mode", e)
            return False
        logger.info("Audio mixer initialized")
        return True

    # ------------------------------------------------------------------
    # Action entry point
    # ------------------------------------------------------------------

    def notify(self, action: Union[ActionEvent, PlaybackAction, str]) -> None:
        """Apply one zone action. Unknown actions are logged and ignored."""
        if isinstance(action, ActionEvent):
            action = action.action
        elif isinstance(action, str):
            action = PlaybackAction.from_string(action)

        handler = self._actions.get(action)
        if handler is None:
            logger.warning("Unknown playback action: %r", action)
            return
        logger.debug("Playback action: %s", action.value)
        handler()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def play(self) -> None:
        """Start or resume the current track. No-op if already playing."""
        if self._playing or not self._playlist:
            return

        track = self.current_track
        if self._audio_available:
            try:
                if self._loaded_path == track.path:
                    pygame.mixer.music.unpause()
                    logger.debug("Resuming %s at %.1fs", track.title, self.elapsed_seconds)
                else:
                    pygame.mixer.music.load(track.path)
                    pygame.mixer.music.play()
                    logger.debug("Loading new track: %s", track.path)
                    self._read_duration_async(track.path)
            except pygame.error as e:
                logger.error("Error playing %s: %s", track.path, e)
                return

        if self._loaded_path != track.path:
            self._loaded_path = track.path
            self._elapsed_before = 0.0
        self._playing = True
        self._resumed_at = self._clock()
        logger.info("Playing: %s - %s", track.title, track.artist)
        self._emit(Events.PLAYBACK_STATE_CHANGED, playing=True, track=track)

    def pause(self) -> None:
        """Pause playback, keeping the position. No-op if already paused."""
        if not self._playing:
            return
        if self._audio_available:
            pygame.mixer.music.pause()
        self._elapsed_before = self.elapsed_seconds
        self._resumed_at = None
        self._playing = False
        logger.info("Paused: %s", self.current_track.title)
        self._emit(Events.PLAYBACK_STATE_CHANGED, playing=False, track=self.current_track)

    def next_track(self) -> None:
        self._change_track(1)

    def previous_track(self) -> None:
        self._change_track(-1)

    def _change_track(self, step: int) -> None:
        if not self._playlist:
            return
        self._index = (self._index + step) % len(self._playlist)
        self._elapsed_before = 0.0
        self._resumed_at = None
        # New track always starts from the beginning, even from pause
        self._loaded_path = None
        if self._audio_available:
            pygame.mixer.music.stop()
        track = self.current_track
        logger.info("Track %d/%d: %s - %s",
                    self._index + 1, len(self._playlist), track.title, track.artist)
        self._emit(Events.TRACK_CHANGED, track=track, index=self._index)

        if self._playing:
            # Restart on the new track
            self._playing = False
            self.play()

    def update(self) -> None:
        """Poll once per frame; advances to the next track when the current one ends."""
        if self._playing and self._audio_available and not pygame.mixer.music.get_busy():
            logger.debug("Track ended: %s", self.current_track.title)
            self.next_track()

    def close(self) -> None:
        """Stop playback and release the mixer."""
        self._playing = False
        if self._audio_available:
            pygame.mixer.music.stop()
            pygame.mixer.quit()
            self._audio_available = False
        logger.info("Music player closed")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current_track(self) -> Optional[Track]:
        if not self._playlist:
            return None
        return self._playlist[self._index]

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def playlist(self) -> List[Track]:
        return list(self._playlist)

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def is_audio_available(self) -> bool:
        return self._audio_available

    @property
    def elapsed_seconds(self) -> float:
        if self._resumed_at is None:
            return self._elapsed_before
        return self._elapsed_before + (self._clock() - self._resumed_at)

    @property
    def total_seconds(self) -> float:
        """Length of the current track, or 0.0 until it has been read."""
        track = self.current_track
        if track is None or not self._audio_available:
            return 0.0
        return self._durations.get(track.path, 0.0)

    def _read_duration_async(self, path: str) -> None:
        # Sound() decodes the whole file; keep that off the frame loop
        if path in self._durations:
            return
        self._durations[path] = 0.0
        self._duration_thread = threading.Thread(
            target=self._read_duration, args=(path,), name="track-length", daemon=True)
        self._duration_thread.start()

    def _read_duration(self, path: str) -> None:
        try:
            self._durations[path] = pygame.mixer.Sound(path).get_length()
        except (pygame.error, FileNotFoundError) as e:
            logger.debug("Could not read duration of %s: %s", path, e)

    @property
    def status_line(self) -> str:
        """One-line now-playing text for the overlay."""
        track = self.current_track
        if track is None:
            return "No tracks"
        state = "Playing" if self._playing else "Paused"
        return "%s: %s - %s  %s / %s" % (
            state, track.title, track.artist,
            format_time(self.elapsed_seconds), format_time(self.total_seconds),
        )

    def _emit(self, event_name: str, **kwargs):
        if self._bus is not None:
            self._bus.emit(event_name, **kwargs)


def format_time(seconds: float) -> str:
    """Format seconds as m:ss; non-finite or negative values show 0:00."""
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return "0:00"
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins}:{secs:02d}"
