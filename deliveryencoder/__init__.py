"""Render a video with an overlay into 16-bit PNG frame sequences using FFmpeg, with a Tk window to drive it."""

__version__ = "0.1.0"