# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import asdict, dataclass, field, fields
from enum import StrEnum
from typing import Any, List, Optional, Type, TypeVar

from dacite import Config, from_dict

from shared.constants import INITIAL_TIME_CREDITS
from shared.json_utils import convert_keys

T = TypeVar("T")


class ServiceCategory(StrEnum):
    EDUCATION = "education"
    HANDYMAN = "handyman"
    TECHNOLOGY = "technology"
    HEALTH = "health"
    COOKING = "cooking"
    TRANSPORTATION = "transportation"
    CLEANING = "cleaning"
    GARDENING = "gardening"
    CREATIVE = "creative"
    OTHER = "other"


class ServiceStatus(StrEnum):
    AVAILABLE = "available"
    BOOKED = "booked"
    COMPLETED = "completed"


class RequestStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


# A request in one of these states keeps its service booked.
ACTIVE_REQUEST_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.ACCEPTED})


@dataclass
class UserData:
    """A member's profile and time-credit ledger, stored in `users/{uid}`."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    location: Optional[str] = None
    created_at: Optional[Any] = None
    time_credits: float = INITIAL_TIME_CREDITS
    services_offered: int = 0
    services_received: int = 0
    average_rating: float = 0
    email_verified: bool = False


@dataclass
class ServiceItem:
    """A service listing offered by a provider."""

    title: str
    description: str
    category: ServiceCategory
    hours_required: float
    provider_id: str
    provider_name: str
    provider_rating: Optional[float] = None
    location: Optional[str] = None
    status: ServiceStatus = ServiceStatus.AVAILABLE
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None
    photos: List[str] = field(default_factory=list)
    # Only set on records synthesized by the offline write fallback.
    created_offline: Optional[bool] = None
    id: Optional[str] = None


@dataclass
class ServiceRequest:
    """A member asking a provider for one of their services."""

    service_id: str
    requester_id: str
    requester_name: str
    provider_id: str
    status: RequestStatus = RequestStatus.PENDING
    message: Optional[str] = None
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None
    completed_at: Optional[Any] = None
    id: Optional[str] = None
    # Set when listing a user's requests: "requester" or "provider".
    role: Optional[str] = None


@dataclass
class ServiceReview:
    service_id: str
    reviewer_id: str
    reviewer_name: str
    provider_id: str
    rating: int
    comment: str
    created_at: Optional[Any] = None
    id: Optional[str] = None


# Fields that describe the record but never live inside the stored document.
_NON_DOCUMENT_FIELDS = {"id", "role"}

_DACITE_CONFIG = Config(
    cast=[ServiceCategory, ServiceStatus, RequestStatus],
    check_types=False,
)


def _plain(value: Any) -> Any:
    if isinstance(value, StrEnum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def to_document(record: Any, *, keep_none: bool = False) -> dict:
    """
    Converts a record dataclass into a camelCase Firestore document.

    The `id` (and the listing-only `role`) is dropped since Firestore keeps
    it on the document reference. `None` values are omitted unless
    `keep_none` is set.
    """
    data = {
        key: _plain(value)
        for key, value in asdict(record).items()
        if key not in _NON_DOCUMENT_FIELDS and (keep_none or value is not None)
    }
    return convert_keys(data, "snake_to_camel")


def from_document(data_class: Type[T], doc_id: Optional[str], data: dict) -> T:
    """Builds a record dataclass from a camelCase Firestore document."""
    snake = convert_keys(dict(data), "camel_to_snake")
    names = {f.name for f in fields(data_class)}
    if "id" in names and doc_id is not None:
        snake["id"] = doc_id
    return from_dict(data_class=data_class, data=snake, config=_DACITE_CONFIG)
