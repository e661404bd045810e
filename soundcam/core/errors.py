"""Exception types raised by SoundCam."""


class SoundCamError(Exception):
    """Base class for SoundCam errors."""


class ConfigurationError(SoundCamError, ValueError):
    """A configuration value is outside its documented range.

    Raised only at construction or reconfiguration time, never from inside
    the detection loop.
    """
