"""Output format → codec preset lookup.

One entry per supported container. Unrecognized formats get the mp4
preset, so a render never fails on an odd format string.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CodecPreset:
    container: str
    video_codec: str
    audio_codec: str
    video_args: tuple[str, ...] = ()
    audio_args: tuple[str, ...] = ()
    container_args: tuple[str, ...] = ()

    @property
    def extension(self) -> str:
        return self.container

    def output_args(self, video_preset: str = "fast", audio_bitrate: str = "192k") -> list[str]:
        """ffmpeg output options for this preset.

        video_preset only applies to x264 encodes; audio_bitrate is used
        unless the preset pins its own audio quality.
        """
        args = ["-c:v", self.video_codec]
        if self.video_codec == "libx264":
            args += ["-preset", video_preset]
        args += list(self.video_args)
        args += ["-c:a", self.audio_codec]
        args += list(self.audio_args) or ["-b:a", audio_bitrate]
        args += list(self.container_args)
        return args


FORMAT_PRESETS = {
    "mp4": CodecPreset(
        container="mp4",
        video_codec="libx264",
        audio_codec="aac",
        video_args=("-pix_fmt", "yuv420p"),
        container_args=("-movflags", "+faststart"),
    ),
    "mov": CodecPreset(
        container="mov",
        video_codec="libx264",
        audio_codec="aac",
        video_args=("-pix_fmt", "yuv420p"),
        container_args=("-movflags", "+faststart"),
    ),
    "webm": CodecPreset(
        container="webm",
        video_codec="libvpx-vp9",
        audio_codec="libopus",
        video_args=("-b:v", "0", "-crf", "32", "-row-mt", "1", "-pix_fmt", "yuv420p"),
    ),
    "avi": CodecPreset(
        container="avi",
        video_codec="mpeg4",
        audio_codec="libmp3lame",
        video_args=("-q:v", "3"),
    ),
}

DEFAULT_FORMAT = "mp4"


def resolve_codec(fmt: str | None) -> CodecPreset:
    """Return the preset for ``fmt`` (case-insensitive), default mp4."""
    key = (fmt or "").strip().lower().lstrip(".")
    return FORMAT_PRESETS.get(key, FORMAT_PRESETS[DEFAULT_FORMAT])
