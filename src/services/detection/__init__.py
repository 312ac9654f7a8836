"""
Detection module - offline clip re-detection backends.

Factory function for creating a detector based on provider configuration.
"""

from .base import BaseClipDetector

__all__ = ["BaseClipDetector", "create_detector"]


def create_detector(provider: str, **kwargs) -> BaseClipDetector:
    """
    Factory function to create a clip detector based on provider.

    Args:
        provider: Detector name ("ffmpeg")
        **kwargs: Provider-specific configuration

    Returns:
        BaseClipDetector implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "ffmpeg":
        from .ffmpeg import FFmpegSilenceDetector

        return FFmpegSilenceDetector(**kwargs)
    else:
        raise ValueError(f"Unknown detector provider: {provider}")
