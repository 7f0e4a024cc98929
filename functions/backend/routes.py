"""
HTTP routes for the time bank API.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.accounts import AccountService
from backend.dependencies import get_accounts, get_data_access
from backend.errors import ErrorKind, TimeBankError
from backend.identity import AuthUser
from backend.schemas import (
    AuthUserResponse,
    ConnectivityResponse,
    EmailRequest,
    EmailVerifiedResponse,
    ResendVerificationResponse,
    ReviewCreateRequest,
    ReviewListResponse,
    ReviewResponse,
    SendVerificationRequest,
    ServiceCreateRequest,
    ServiceListResponse,
    ServiceRequestCreate,
    ServiceRequestListResponse,
    ServiceRequestResponse,
    ServiceRequestUpdate,
    ServiceResponse,
    ServiceUpdateRequest,
    SigninRequest,
    SignupRequest,
    SignupResponse,
    StatusResponse,
    UserDataResponse,
    VerifyEmailRequest,
)
from backend.services import TimeBankService
from shared.types import RequestStatus, ServiceCategory, ServiceItem

logger = logging.getLogger(__name__)

router = APIRouter()

_bearer = HTTPBearer(auto_error=False)


def _token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    return credentials.credentials if credentials else None


def current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    accounts: AccountService = Depends(get_accounts),
) -> AuthUser:
    return accounts.current_user(_token(credentials))


def optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    accounts: AccountService = Depends(get_accounts),
) -> Optional[AuthUser]:
    token = _token(credentials)
    return accounts.current_user(token) if token else None


def _require_self(user: AuthUser, user_id: str) -> None:
    if user.uid != user_id:
        raise TimeBankError(
            ErrorKind.PERMISSION_DENIED, "You can only view your own requests"
        )


# Auth


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
def signup(payload: SignupRequest, accounts: AccountService = Depends(get_accounts)):
    """
    Create an account. The member is signed out until they verify their email.
    """
    result = accounts.signup(
        payload.email, payload.password, payload.confirm_password, payload.display_name
    )
    user = AuthUserResponse.model_validate(result.user).model_copy(update={"id_token": None})
    return SignupResponse(user=user, verification_sent=result.verification_sent)


@router.post("/auth/signin", response_model=AuthUserResponse)
def signin(payload: SigninRequest, accounts: AccountService = Depends(get_accounts)):
    return AuthUserResponse.model_validate(accounts.signin(payload.email, payload.password))


@router.post("/auth/signout", response_model=StatusResponse)
def signout(
    user: AuthUser = Depends(current_user),
    accounts: AccountService = Depends(get_accounts),
):
    accounts.signout(user)
    return StatusResponse()


@router.get("/auth/me", response_model=AuthUserResponse)
def me(user: AuthUser = Depends(current_user)):
    return AuthUserResponse.model_validate(user)


@router.post("/auth/send-verification", response_model=StatusResponse)
def send_verification(
    payload: SendVerificationRequest,
    user: AuthUser = Depends(current_user),
    accounts: AccountService = Depends(get_accounts),
):
    accounts.send_verification_email(user, payload.redirect_url)
    return StatusResponse()


@router.post("/auth/verify-email", response_model=AuthUserResponse)
def verify_email(
    payload: VerifyEmailRequest, accounts: AccountService = Depends(get_accounts)
):
    return AuthUserResponse.model_validate(accounts.apply_verification_code(payload.code))


@router.post("/auth/resend-verification", response_model=ResendVerificationResponse)
def resend_verification(
    payload: SigninRequest, accounts: AccountService = Depends(get_accounts)
):
    return ResendVerificationResponse(
        sent=accounts.resend_verification(payload.email, payload.password)
    )


@router.get("/auth/email-verified", response_model=EmailVerifiedResponse)
def email_verified(
    user: AuthUser = Depends(current_user),
    accounts: AccountService = Depends(get_accounts),
):
    return EmailVerifiedResponse(email_verified=accounts.check_email_verified(user))


@router.post("/auth/forgot-password", response_model=StatusResponse)
def forgot_password(payload: EmailRequest, accounts: AccountService = Depends(get_accounts)):
    accounts.send_password_reset_email(payload.email)
    return StatusResponse()


@router.delete("/auth/account", response_model=StatusResponse)
def delete_account(
    user: AuthUser = Depends(current_user),
    accounts: AccountService = Depends(get_accounts),
):
    accounts.delete_account(user)
    return StatusResponse()


# Services


@router.get("/services", response_model=ServiceListResponse)
def list_services(
    category: Optional[ServiceCategory] = Query(default=None),
    max_items: Optional[int] = Query(default=None, ge=1, le=500),
    data: TimeBankService = Depends(get_data_access),
):
    services = data.get_available_services(category=category, max_items=max_items)
    return ServiceListResponse(
        services=[ServiceResponse.model_validate(service) for service in services]
    )


@router.get("/services/offline", response_model=ServiceListResponse)
def list_offline_services(data: TimeBankService = Depends(get_data_access)):
    """
    Services saved locally because the database could not be reached.
    """
    return ServiceListResponse(
        services=[ServiceResponse.model_validate(s) for s in data.get_offline_services()]
    )


@router.get("/services/{service_id}", response_model=ServiceResponse)
def get_service(service_id: str, data: TimeBankService = Depends(get_data_access)):
    return ServiceResponse.model_validate(data.get_service(service_id))


@router.post("/services", response_model=ServiceResponse, status_code=201)
def create_service(
    payload: ServiceCreateRequest,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    profile = data.get_user_data(user.uid, current_user=user)
    service = ServiceItem(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        hours_required=payload.hours_required,
        provider_id=user.uid,
        provider_name=user.display_name or user.email or "",
        provider_rating=profile.average_rating if profile else None,
        location=payload.location,
        photos=payload.photos,
    )
    return ServiceResponse.model_validate(data.add_service(user, service))


@router.patch("/services/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: str,
    payload: ServiceUpdateRequest,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return ServiceResponse.model_validate(data.update_service(user, service_id, changes))


@router.delete("/services/{service_id}", response_model=StatusResponse)
def delete_service(
    service_id: str,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    data.delete_service(user, service_id)
    return StatusResponse()


@router.get("/services/{service_id}/reviews", response_model=ReviewListResponse)
def service_reviews(service_id: str, data: TimeBankService = Depends(get_data_access)):
    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(r) for r in data.get_service_reviews(service_id)]
    )


# Requests


@router.post("/requests", response_model=ServiceRequestResponse, status_code=201)
def create_request(
    payload: ServiceRequestCreate,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    request = data.request_service(user, payload.service_id, payload.message)
    return ServiceRequestResponse.model_validate(request)


@router.patch("/requests/{request_id}", response_model=ServiceRequestResponse)
def update_request(
    request_id: str,
    payload: ServiceRequestUpdate,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    request = data.update_service_request(
        user, request_id, status=payload.status, message=payload.message
    )
    return ServiceRequestResponse.model_validate(request)


@router.post("/requests/{request_id}/complete", response_model=ServiceRequestResponse)
def complete_request(
    request_id: str,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    """
    Complete a request and move the service's hours from requester to provider.
    """
    request = data.update_service_request(user, request_id, status=RequestStatus.COMPLETED)
    return ServiceRequestResponse.model_validate(request)


# Reviews


@router.post("/reviews", response_model=ReviewResponse, status_code=201)
def create_review(
    payload: ReviewCreateRequest,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    review = data.add_review(user, payload.service_id, payload.rating, payload.comment)
    return ReviewResponse.model_validate(review)


# Users


@router.get("/users/{user_id}", response_model=UserDataResponse)
def get_user(
    user_id: str,
    user: Optional[AuthUser] = Depends(optional_user),
    data: TimeBankService = Depends(get_data_access),
):
    record = data.get_user_data(user_id, current_user=user)
    if record is None:
        raise TimeBankError(ErrorKind.NOT_FOUND, "User not found")
    return UserDataResponse(**asdict(record))


@router.get("/users/{user_id}/services", response_model=ServiceListResponse)
def provider_services(user_id: str, data: TimeBankService = Depends(get_data_access)):
    return ServiceListResponse(
        services=[
            ServiceResponse.model_validate(s) for s in data.get_services_by_provider(user_id)
        ]
    )


@router.get("/users/{user_id}/requests", response_model=ServiceRequestListResponse)
def user_requests(
    user_id: str,
    user: AuthUser = Depends(current_user),
    data: TimeBankService = Depends(get_data_access),
):
    _require_self(user, user_id)
    return ServiceRequestListResponse(
        requests=[
            ServiceRequestResponse.model_validate(r) for r in data.get_requests_by_user(user_id)
        ]
    )


@router.get("/users/{user_id}/reviews", response_model=ReviewListResponse)
def provider_reviews(user_id: str, data: TimeBankService = Depends(get_data_access)):
    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(r) for r in data.get_provider_reviews(user_id)]
    )


# Diagnostics


@router.get("/connectivity", response_model=ConnectivityResponse)
def connectivity(data: TimeBankService = Depends(get_data_access)):
    return ConnectivityResponse(
        network_online=data.probe.network.is_online(),
        database_reachable=data.probe.probe(),
    )
