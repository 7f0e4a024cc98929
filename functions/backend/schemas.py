"""
Pydantic schemas for the time bank HTTP API.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.types import RequestStatus, ServiceCategory, ServiceStatus


class SignupRequest(BaseModel):
    email: str
    password: str
    confirm_password: str
    display_name: str


class SigninRequest(BaseModel):
    email: str
    password: str


class EmailRequest(BaseModel):
    email: str


class VerifyEmailRequest(BaseModel):
    code: str = Field(..., min_length=1)


class SendVerificationRequest(BaseModel):
    redirect_url: Optional[str] = None


class AuthUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False
    id_token: Optional[str] = None


class SignupResponse(BaseModel):
    user: AuthUserResponse
    verification_sent: bool


class ResendVerificationResponse(BaseModel):
    sent: Literal["verification", "password_reset"]


class EmailVerifiedResponse(BaseModel):
    email_verified: bool


class StatusResponse(BaseModel):
    status: Literal["ok"] = "ok"


class UserDataResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[list[str]] = None
    location: Optional[str] = None
    created_at: Optional[Any] = None
    time_credits: float
    services_offered: int
    services_received: int
    average_rating: float
    email_verified: bool


class ServiceCreateRequest(BaseModel):
    title: str
    description: str
    category: ServiceCategory
    hours_required: float
    location: Optional[str] = None
    photos: list[str] = Field(default_factory=list)


class ServiceUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[ServiceCategory] = None
    hours_required: Optional[float] = None
    location: Optional[str] = None
    photos: Optional[list[str]] = None


class ServiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    title: str
    description: str
    category: ServiceCategory
    hours_required: float
    provider_id: str
    provider_name: str
    provider_rating: Optional[float] = None
    location: Optional[str] = None
    status: ServiceStatus
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None
    photos: list[str] = Field(default_factory=list)
    created_offline: Optional[bool] = None


class ServiceListResponse(BaseModel):
    services: list[ServiceResponse]


class ServiceRequestCreate(BaseModel):
    service_id: str
    message: Optional[str] = None


class ServiceRequestUpdate(BaseModel):
    status: Optional[RequestStatus] = None
    message: Optional[str] = None


class ServiceRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    service_id: str
    requester_id: str
    requester_name: str
    provider_id: str
    status: RequestStatus
    message: Optional[str] = None
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None
    completed_at: Optional[Any] = None
    role: Optional[Literal["requester", "provider"]] = None


class ServiceRequestListResponse(BaseModel):
    requests: list[ServiceRequestResponse]


class ReviewCreateRequest(BaseModel):
    service_id: str
    rating: int
    comment: str = ""


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    service_id: str
    reviewer_id: str
    reviewer_name: str
    provider_id: str
    rating: int
    comment: str
    created_at: Optional[Any] = None


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]


class ConnectivityResponse(BaseModel):
    network_online: bool
    database_reachable: bool
