"""
Receives uploaded video files from the frontend
Validates type and size before the bytes are sent for analysis
"""

from fastapi import UploadFile


def accept_video_file(file: UploadFile) -> dict:
    """
    Accepts and validates video file from FormData upload
    Returns file metadata if valid
    """
    content_type = file.content_type or ""
    filename = file.filename or ""
    if not (
        content_type.startswith("video/")
        or filename.lower().endswith(".mov")
        or content_type == "application/octet-stream"
    ):
        raise ValueError("Invalid file type. Only video files are allowed.")

    return {
        "filename": filename or "video.mp4",
        "content_type": content_type or "application/octet-stream",
        "file": file,
    }


def read_video_bytes(file: UploadFile, max_bytes: int) -> bytes:
    """
    Reads the whole upload into memory
    Raises ValueError for empty or oversized files
    """
    file.file.seek(0)
    content = file.file.read(max_bytes + 1)
    if not content:
        raise ValueError("Empty file received")
    if len(content) > max_bytes:
        raise ValueError(f"File too large. Maximum size: {max_bytes} bytes")
    return content
