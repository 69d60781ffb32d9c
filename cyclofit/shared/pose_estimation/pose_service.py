"""
Client for the external pose analysis service.

Computer vision (pose landmarks, joint angles, body lengths, bike fit
recommendations) runs in a separate service. This module only ships the
uploaded video there and returns its JSON answer.
"""

import logging
from typing import Any, Dict, Optional

import requests
from fastapi import Depends

from cyclofit.shared.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 40


class PoseServiceError(Exception):
    """The pose service could not produce an analysis."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PoseServiceClient:

    def __init__(self, url: str, timeout: float = 600.0):
        self.url = url
        self.timeout = timeout

    def process_video(
        self,
        video_bytes: bytes,
        user_height_cm: float,
        quality: int = DEFAULT_QUALITY,
        bike_type: str = "road",
        filename: str = "video.mp4",
        content_type: str = "video/mp4",
    ) -> Dict[str, Any]:
        """
        POST the video as multipart/form-data and return the parsed analysis.

        Form fields: video (file), user_height_cm, quality, bike_type.

        Raises:
            PoseServiceError: upstream HTTP error (its status code), connection
            failure (502), timeout (504) or a body that is not a JSON object (502)
        """
        files = {"video": (filename or "video.mp4", video_bytes, content_type or "video/mp4")}
        data = {
            "user_height_cm": str(user_height_cm),
            "quality": str(quality),
            "bike_type": bike_type,
        }

        logger.info(f"Sending {len(video_bytes)} bytes to pose service at {self.url}")
        try:
            response = requests.post(self.url, files=files, data=data, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error(f"Pose service timed out after {self.timeout}s: {str(e)}")
            raise PoseServiceError("Pose analysis service timed out", status_code=504) from e
        except requests.RequestException as e:
            logger.error(f"Pose service unreachable: {str(e)}")
            raise PoseServiceError("Pose analysis service unavailable", status_code=502) from e

        if response.status_code >= 400:
            logger.error(f"Pose service returned {response.status_code}: {response.text[:500]}")
            raise PoseServiceError("Error processing video with AI", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise PoseServiceError("Pose analysis service returned invalid JSON") from e
        if not isinstance(payload, dict):
            raise PoseServiceError("Pose analysis service returned an unexpected response")

        logger.info("Pose analysis complete")
        return payload


_client: Optional[PoseServiceClient] = None


def get_pose_client(settings: Settings = Depends(get_settings)) -> PoseServiceClient:
    """FastAPI dependency returning the configured pose service client."""
    global _client
    if _client is None or _client.url != settings.PYTHON_SERVER_URL or _client.timeout != settings.POSE_SERVICE_TIMEOUT:
        _client = PoseServiceClient(settings.PYTHON_SERVER_URL, settings.POSE_SERVICE_TIMEOUT)
    return _client
