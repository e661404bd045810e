"""Camera frame acquisition."""
from .camera import Camera, CameraConfig, FrameSource

__all__ = ["Camera", "CameraConfig", "FrameSource"]
