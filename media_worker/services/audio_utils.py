from __future__ import annotations

from pathlib import Path

from media_worker.services.commands import run_command


def extract_audio_mp3(video_path: Path, out_path: Path, *, ffmpeg_bin: str = "ffmpeg") -> Path:
    """
    Strip the video track and re-encode audio as 128k CBR mp3 for STT.
    Writes next to the input (same temp folder) and returns out_path.
    """
    args = [
        "-y",
        "-i",
        str(video_path),
        "-vn",
        "-acodec",
        "mp3",
        "-b:a",
        "128k",
        str(out_path),
    ]
    run_command(ffmpeg_bin, args, cwd=out_path.parent)
    return out_path
