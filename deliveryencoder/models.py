"""Output resolution presets."""

from __future__ import annotations

from enum import Enum

_FILTER_FLAGS = "lanczos+full_chroma_inp+full_chroma_int"


class Resolution(Enum):
    """Target resolution for the rendered frames."""

    K2 = "2k"
    K4 = "4k"
    K6 = "6k"

    def label(self) -> str:
        """Human-readable name shown in the resolution picker."""
        return {
            Resolution.K2: "2K (2048x2048)",
            Resolution.K4: "4K (4096x4096)",
            Resolution.K6: "6K (Original)",
        }[self]

    def target_size(self) -> tuple[int, int] | None:
        """Fixed output size, or None when the source size is kept."""
        return {
            Resolution.K2: (2048, 2048),
            Resolution.K4: (4096, 4096),
            Resolution.K6: None,
        }[self]

    def filter_flags(self) -> str:
        """Scaler flags used by the ffmpeg scale filter."""
        return _FILTER_FLAGS

    def file_tag(self) -> str:
        """Tag written into output file names."""
        return self.value