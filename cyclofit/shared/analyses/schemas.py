"""Pydantic schemas for analysis API.

This module defines the response schemas for the analysis endpoints.
Angle maps and recommendations are passed through untouched.
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime


class OriginalVideoInfo(BaseModel):
    """Metadata of the uploaded video (the bytes themselves are not kept)."""
    filename: Optional[str] = None
    size: Optional[int] = None
    content_type: Optional[str] = None
    duration: Optional[float] = None


class KeyframeInfo(BaseModel):
    index: int
    timestamp: Optional[float] = None  # seconds
    timestamp_estimated: bool = True  # evenly spaced over the duration, not measured


class KeyframeUrl(KeyframeInfo):
    url: str


class AnalysisResult(BaseModel):
    """Summary returned right after processing."""
    max_angles: Optional[Dict[str, Any]] = None
    min_angles: Optional[Dict[str, Any]] = None
    body_lengths_cm: Optional[Dict[str, Any]] = None
    recommendations: Optional[Dict[str, Any]] = None
    bike_type: str
    duration: Optional[float] = None
    storage_type: str
    processed_video_available: bool
    keyframes_available: bool
    keyframe_count: int


class ProcessResponse(BaseModel):
    message: str
    analysisId: str
    analysisResult: AnalysisResult


class AnalysisListItem(BaseModel):
    """Schema for analysis list item (summary without angle data)."""
    id: str
    title: str
    bike_type: str
    user_height_cm: float
    duration: Optional[float] = None
    formatted_duration: str
    keyframe_count: int
    processed_video_available: bool
    created_at: datetime


class AnalysisListResponse(BaseModel):
    analyses: List[AnalysisListItem]


class AnalysisDetail(BaseModel):
    """Schema for single analysis response with full details."""
    id: str
    user_id: str
    title: str
    description: str
    storage_type: str
    bike_type: str
    user_height_cm: float
    duration: Optional[float] = None
    formatted_duration: str
    original_video: OriginalVideoInfo
    max_angles: Optional[Dict[str, Any]] = None
    min_angles: Optional[Dict[str, Any]] = None
    body_lengths_cm: Optional[Dict[str, Any]] = None
    recommendations: Optional[Dict[str, Any]] = None
    processed_video_available: bool
    keyframes_available: bool
    keyframe_count: int
    keyframes: List[KeyframeInfo] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AnalysisDetailResponse(BaseModel):
    analysis: AnalysisDetail


class UrlResponse(BaseModel):
    url: str


class KeyframeUrlResponse(BaseModel):
    url: str
    timestamp: Optional[float] = None
    timestamp_estimated: bool = True


class KeyframeListResponse(BaseModel):
    keyframes: List[KeyframeUrl]


class MessageResponse(BaseModel):
    message: str
