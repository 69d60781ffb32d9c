"""
Reads a video's duration with ffprobe.

ffprobe is optional on the serving host: when it is missing or fails the
duration is simply unknown (None).
"""

import logging
import os
import shutil
import subprocess
import tempfile
from typing import Optional

logger = logging.getLogger(__name__)

FFPROBE_TIMEOUT_SECONDS = 60


def _find_ffprobe(ffprobe_path: Optional[str]) -> Optional[str]:
    if ffprobe_path:
        return ffprobe_path if os.path.exists(ffprobe_path) else None
    return shutil.which("ffprobe")


def probe_video_duration(data: bytes, ffprobe_path: Optional[str] = None) -> Optional[float]:
    """
    Write data to a temporary file and ask ffprobe for its duration in seconds.
    Returns None when ffprobe is unavailable or cannot read the file.
    """
    binary = _find_ffprobe(ffprobe_path)
    if binary is None:
        logger.info("ffprobe not available, skipping duration extraction")
        return None

    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".mp4")
    try:
        temp_file.write(data)
        temp_file.close()

        cmd = [
            binary,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            temp_file.name,
        ]
        try:
            out = subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=FFPROBE_TIMEOUT_SECONDS
            ).stdout.strip()
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"ffprobe failed, continuing without duration: {str(e)}")
            return None

        try:
            duration = float(out)
        except ValueError:
            logger.warning(f"ffprobe returned non-numeric duration: {out!r}")
            return None
        if duration != duration or duration < 0:  # NaN or negative
            return None
        return duration
    finally:
        try:
            os.unlink(temp_file.name)
        except OSError as e:
            logger.error(f"Error removing temp file {temp_file.name}: {str(e)}")
