"""
Wire contract with the contribution backend (pydantic models).

The same bounds the backend enforces are validated here, so a payload that
would be refused never leaves the client.
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from signcapture.core.landmarks import HAND_POINT_COUNT, POSE_POINT_COUNT


class Landmark(BaseModel):
    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    z: float
    visibility: float = Field(default=1.0, ge=0.0, le=1.0)


class FrameModel(BaseModel):
    frame_number: int = Field(ge=0)
    timestamp: float = Field(ge=0.0)
    pose_landmarks: list[Landmark] = Field(min_length=POSE_POINT_COUNT, max_length=POSE_POINT_COUNT)
    left_hand_landmarks: Optional[list[Landmark]] = Field(
        default=None, min_length=HAND_POINT_COUNT, max_length=HAND_POINT_COUNT
    )
    right_hand_landmarks: Optional[list[Landmark]] = Field(
        default=None, min_length=HAND_POINT_COUNT, max_length=HAND_POINT_COUNT
    )
    face_landmarks: Optional[list[Landmark]] = None


class ContributionMetadata(BaseModel):
    client_info: str
    timestamp: str


class ContributionPayload(BaseModel):
    word: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    frames: list[FrameModel]
    duration: float = Field(ge=0.0)
    metadata: ContributionMetadata
    sign_type_movement: Literal["static", "dynamic"]
    sign_type_hands: Literal["one-handed", "two-handed"]
    num_attempts: int = Field(ge=1)
    individual_qualities: list[float]
    individual_durations: list[float]
    quality_variance: float = Field(ge=0.0)
    improvement_trend: Literal["improving", "declining", "stable", "variable"]


class QualityBreakdownModel(BaseModel):
    overall_score: float
    hand_visibility: float
    motion_smoothness: float
    frame_completeness: float
    lighting_quality: float = 0.0
    components: dict[str, str] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)


class ContributionResponse(BaseModel):
    total_contributions: int
    progress_percentage: float
    quality_breakdown: Optional[QualityBreakdownModel] = None


class ErrorDetail(BaseModel):
    reason: str
    quality_score: Optional[float] = None
    quality_breakdown: Optional[QualityBreakdownModel] = None


class ErrorResponse(BaseModel):
    detail: Union[ErrorDetail, str, list, dict]
