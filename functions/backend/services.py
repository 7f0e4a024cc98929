"""
Data access for listings, requests, reviews and user records.

Every remote read goes through a deadline and, where a cache or local
fallback exists, degrades to it instead of failing: a stale listing beats
an empty page, and an offline-created service beats a lost form.
"""

from __future__ import annotations

import copy
import logging
import time
from concurrent.futures import Executor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from dacite.exceptions import DaciteError

from backend.cache import ExpiringCache
from backend.config import Settings
from backend.connectivity import ConnectivityProbe
from backend.db import DeleteWrite, DocumentStore, Guard, Increment, UpdateWrite
from backend.errors import ErrorKind, TimeBankError
from backend.identity import AuthUser
from backend.storage import LocalStorage, append_to_list, load_list
from backend.timeouts import run_with_timeout
from backend.validation import RequestForm, ReviewForm, ServiceForm, validate_form
from shared.constants import ALL_SERVICES_CACHE_KEY, OFFLINE_ID_PREFIX
from shared.json_utils import snake_to_camel
from shared.firebase_constants import (
    OFFLINE_SERVICES_KEY,
    REQUESTS_COLLECTION,
    REVIEWS_COLLECTION,
    SERVICES_COLLECTION,
    USERS_COLLECTION,
)
from shared.types import (
    ACTIVE_REQUEST_STATUSES,
    RequestStatus,
    ServiceCategory,
    ServiceItem,
    ServiceRequest,
    ServiceReview,
    ServiceStatus,
    UserData,
    from_document,
    to_document,
)

logger = logging.getLogger(__name__)

LISTING_TIMEOUT_MESSAGE = (
    "Services listing request took too long. Please try again or check your connection."
)
CREATE_TIMEOUT_MESSAGE = (
    "Service creation is taking longer than expected. Please try again."
)
WRITE_TIMEOUT_MESSAGE = "Saving your changes took too long. Please try again."
READ_TIMEOUT_MESSAGE = "Loading took too long. Please try again."

# Service fields a provider may edit after creation.
EDITABLE_SERVICE_FIELDS = frozenset(
    {"title", "description", "category", "hours_required", "location", "photos"}
)


def _require_user(user: Optional[AuthUser], action: str) -> AuthUser:
    if user is None:
        raise TimeBankError(ErrorKind.UNAUTHENTICATED, f"You must be logged in to {action}")
    return user


def _decode_services(snapshots) -> list[ServiceItem]:
    """Hydrates listing documents, skipping any that do not decode."""
    services = []
    for snap in snapshots:
        try:
            services.append(from_document(ServiceItem, snap.id, snap.data))
        except (DaciteError, ValueError, TypeError) as e:
            logger.warning("Skipping malformed service %s: %s", snap.id, e)
    return services


class TimeBankService:
    """
    The time bank's data-access operations over a remote document store.

    Owns the listing and user-record caches; construct once per process and
    pass it to whatever needs it.
    """

    def __init__(
        self,
        store: DocumentStore,
        local_storage: LocalStorage,
        probe: ConnectivityProbe,
        *,
        cache_ttl_seconds: float = 5 * 60,
        query_timeout: float = 25.0,
        write_timeout: float = 20.0,
        default_max_items: int = 50,
        clock: Callable[[], float] = time.time,
        executor: Optional[Executor] = None,
    ):
        self.store = store
        self.local_storage = local_storage
        self.probe = probe
        self.executor = executor or probe.executor
        self.query_timeout = query_timeout
        self.write_timeout = write_timeout
        self.default_max_items = default_max_items
        self._clock = clock
        self.listings_cache: ExpiringCache[list[ServiceItem]] = ExpiringCache(
            cache_ttl_seconds, clock
        )
        self.users_cache: ExpiringCache[UserData] = ExpiringCache(cache_ttl_seconds, clock)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: DocumentStore,
        local_storage: LocalStorage,
        probe: ConnectivityProbe,
    ) -> "TimeBankService":
        return cls(
            store,
            local_storage,
            probe,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            query_timeout=settings.query_timeout_seconds,
            write_timeout=settings.write_timeout_seconds,
            default_max_items=settings.default_max_items,
        )

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()

    def _is_online(self) -> bool:
        return self.probe.network.is_online()

    def _read(self, operation: Callable[[float], object], message: str = READ_TIMEOUT_MESSAGE):
        return run_with_timeout(self.executor, operation, self.query_timeout, message)

    def _write(self, operation: Callable[[float], object], message: str = WRITE_TIMEOUT_MESSAGE):
        return run_with_timeout(self.executor, operation, self.write_timeout, message)

    # Listings

    def get_available_services(
        self,
        category: Optional[ServiceCategory] = None,
        max_items: Optional[int] = None,
    ) -> list[ServiceItem]:
        """
        Lists available services, newest first, optionally for one category.

        Fresh cache wins; otherwise the database is probed and queried. When
        that is not possible the same key's stale entry is served, and with
        no entry a connectivity failure yields an empty list. Entries for
        "all" and for a category never stand in for one another.
        """
        limit = max_items or self.default_max_items
        key = category.value if category else ALL_SERVICES_CACHE_KEY
        entry = self.listings_cache.get(key)

        if entry and entry.fresh:
            logger.debug("Using cached services data for %s", key)
            return copy.deepcopy(entry.value)

        if not self.probe.probe():
            if entry:
                logger.info("Using expired cache for %s due to connectivity issues", key)
                return copy.deepcopy(entry.value)
            logger.info("No database connection and no cache available for %s", key)
            return []

        filters = [("status", ServiceStatus.AVAILABLE.value)]
        if category:
            filters.append(("category", category.value))

        try:
            snapshots = self._read(
                lambda deadline: self.store.query(
                    SERVICES_COLLECTION,
                    filters=filters,
                    order_by="createdAt",
                    descending=True,
                    limit=limit,
                    timeout=deadline,
                ),
                LISTING_TIMEOUT_MESSAGE,
            )
        except TimeBankError as e:
            stale = self.listings_cache.get_stale(key)
            if stale is not None:
                logger.warning("Services query failed (%s), using cached data", e.kind.value)
                return copy.deepcopy(stale)
            if e.is_connectivity:
                logger.warning("Services query failed (%s), returning no services", e.kind.value)
                return []
            raise

        services = _decode_services(snapshots)
        self.listings_cache.put(key, services)
        logger.info("Retrieved %d services for %s", len(services), key)
        return copy.deepcopy(services)

    def get_service(self, service_id: str) -> ServiceItem:
        snapshot = self._read(
            lambda deadline: self.store.get(SERVICES_COLLECTION, service_id, timeout=deadline)
        )
        if snapshot is None:
            raise TimeBankError(ErrorKind.NOT_FOUND, "Service not found")
        return from_document(ServiceItem, snapshot.id, snapshot.data)

    def get_services_by_provider(self, provider_id: str) -> list[ServiceItem]:
        snapshots = self._read(
            lambda deadline: self.store.query(
                SERVICES_COLLECTION,
                filters=[("providerId", provider_id)],
                order_by="createdAt",
                descending=True,
                timeout=deadline,
            )
        )
        return _decode_services(snapshots)

    def add_service(self, user: Optional[AuthUser], service: ServiceItem) -> ServiceItem:
        """
        Creates a listing for the signed-in provider.

        When the write fails for connectivity reasons the listing is kept in
        local storage instead and returned with an `offline_` id and
        `created_offline=True`. Nothing pushes those records to the database
        later or merges them into listings.

        Raises:
            TimeBankError: UNAUTHENTICATED, EMAIL_NOT_VERIFIED, PERMISSION_DENIED
                or VALIDATION before any remote call; AUTH_EXPIRED when the
                database rejects the session; STORAGE when the offline copy
                cannot be saved either.
        """
        user = _require_user(user, "create a service")
        # Verification status cannot be refreshed offline, so it only blocks online.
        if self._is_online() and not user.email_verified:
            raise TimeBankError(
                ErrorKind.EMAIL_NOT_VERIFIED,
                "Your email must be verified before creating a service",
            )
        if service.provider_id != user.uid:
            raise TimeBankError(
                ErrorKind.PERMISSION_DENIED, "You can only create services for yourself"
            )

        form = validate_form(
            ServiceForm,
            title=service.title,
            description=service.description,
            category=service.category,
            hours_required=service.hours_required,
            location=service.location,
        )
        now = self._now_iso()
        record = replace(
            service,
            title=form.title,
            description=form.description,
            category=form.category,
            hours_required=form.hours_required,
            location=form.location or None,
            status=ServiceStatus.AVAILABLE,
            created_at=now,
            updated_at=now,
            created_offline=None,
            id=None,
        )

        try:
            self.probe.ping()
            doc_id = self._write(
                lambda deadline: self.store.create(
                    SERVICES_COLLECTION, to_document(record), timeout=deadline
                ),
                CREATE_TIMEOUT_MESSAGE,
            )
        except TimeBankError as e:
            if e.is_connectivity or not self._is_online():
                logger.info("Detected offline or timeout condition (%s), using local storage", e.kind.value)
                return self._save_offline(record)
            if e.kind in (ErrorKind.AUTH_EXPIRED, ErrorKind.PERMISSION_DENIED):
                raise TimeBankError(
                    ErrorKind.AUTH_EXPIRED, "Authentication error: Please sign in again."
                ) from e
            raise

        logger.info("Service added with ID: %s", doc_id)
        try:
            self._write(
                lambda deadline: self.store.update(
                    USERS_COLLECTION,
                    user.uid,
                    {"servicesOffered": Increment(1)},
                    timeout=deadline,
                )
            )
        except TimeBankError as e:
            logger.warning("Could not update service counter, but service was created: %s", e)
        self.users_cache.invalidate(user.uid)
        return replace(record, id=doc_id)

    def _save_offline(self, record: ServiceItem) -> ServiceItem:
        offline = replace(
            record,
            id=f"{OFFLINE_ID_PREFIX}{int(self._clock() * 1000)}",
            created_offline=True,
        )
        document = to_document(offline)
        document["id"] = offline.id
        try:
            append_to_list(self.local_storage, OFFLINE_SERVICES_KEY, document)
        except TimeBankError as e:
            logger.error("Could not store service offline: %s", e)
            raise TimeBankError(
                ErrorKind.STORAGE,
                "Could not save service offline. Please try again when online.",
            ) from e
        logger.info("Service saved to local storage with ID: %s", offline.id)
        return offline

    def get_offline_services(self) -> list[ServiceItem]:
        """Services held in local storage after a failed remote write."""
        return [
            from_document(ServiceItem, item.get("id"), item)
            for item in load_list(self.local_storage, OFFLINE_SERVICES_KEY)
        ]

    def _require_owned_service(self, user: Optional[AuthUser], service_id: str) -> ServiceItem:
        user = _require_user(user, "change a service")
        service = self.get_service(service_id)
        if service.provider_id != user.uid:
            raise TimeBankError(
                ErrorKind.PERMISSION_DENIED, "You can only change your own services"
            )
        return service

    def update_service(
        self, user: Optional[AuthUser], service_id: str, changes: dict
    ) -> ServiceItem:
        """Applies `changes` (snake_case record fields) to an owned listing."""
        unknown = set(changes) - EDITABLE_SERVICE_FIELDS
        if unknown:
            raise TimeBankError(
                ErrorKind.VALIDATION, f"Cannot update fields: {', '.join(sorted(unknown))}"
            )
        service = self._require_owned_service(user, service_id)
        updated = replace(service, **changes)
        form = validate_form(
            ServiceForm,
            title=updated.title,
            description=updated.description,
            category=updated.category,
            hours_required=updated.hours_required,
            location=updated.location,
        )
        updated = replace(
            updated,
            title=form.title,
            description=form.description,
            category=form.category,
            hours_required=form.hours_required,
            updated_at=self._now_iso(),
        )
        document = to_document(updated)
        changed = {snake_to_camel(key) for key in changes} | {"updatedAt"}
        fields = {key: value for key, value in document.items() if key in changed}
        # Settlement charges hours_required, so it is fixed once booked.
        if "hours_required" in changes:
            allowed = frozenset({ServiceStatus.AVAILABLE.value})
        else:
            allowed = frozenset(s.value for s in ServiceStatus)
        applied = self._write(
            lambda deadline: self.store.commit_if(
                Guard(SERVICES_COLLECTION, service_id, "status", allowed),
                [UpdateWrite(SERVICES_COLLECTION, service_id, fields)],
                timeout=deadline,
            )
        )
        if not applied:
            raise TimeBankError(
                ErrorKind.INVALID_STATE, "Hours cannot change once the service is booked"
            )
        return updated

    def delete_service(self, user: Optional[AuthUser], service_id: str) -> None:
        """Deletes an owned listing; only while no request holds it."""
        self._require_owned_service(user, service_id)
        deleted = self._write(
            lambda deadline: self.store.commit_if(
                Guard(
                    SERVICES_COLLECTION,
                    service_id,
                    "status",
                    frozenset({ServiceStatus.AVAILABLE.value}),
                ),
                [DeleteWrite(SERVICES_COLLECTION, service_id)],
                timeout=deadline,
            )
        )
        if not deleted:
            raise TimeBankError(
                ErrorKind.INVALID_STATE, "A booked or completed service cannot be deleted"
            )

    # Requests

    def get_request(self, request_id: str) -> ServiceRequest:
        snapshot = self._read(
            lambda deadline: self.store.get(REQUESTS_COLLECTION, request_id, timeout=deadline)
        )
        if snapshot is None:
            raise TimeBankError(ErrorKind.NOT_FOUND, "Service request not found")
        return from_document(ServiceRequest, snapshot.id, snapshot.data)

    def request_service(
        self, user: Optional[AuthUser], service_id: str, message: Optional[str] = None
    ) -> ServiceRequest:
        """
        Books an available service for the signed-in member and records a
        pending request.
        """
        user = _require_user(user, "request a service")
        form = validate_form(RequestForm, message=message)
        service = self.get_service(service_id)
        if service.provider_id == user.uid:
            raise TimeBankError(ErrorKind.INVALID_STATE, "You cannot request your own service")

        now = self._now_iso()
        booked = self._write(
            lambda deadline: self.store.commit_if(
                Guard(
                    SERVICES_COLLECTION,
                    service_id,
                    "status",
                    frozenset({ServiceStatus.AVAILABLE.value}),
                ),
                [
                    UpdateWrite(
                        SERVICES_COLLECTION,
                        service_id,
                        {"status": ServiceStatus.BOOKED.value, "updatedAt": now},
                    )
                ],
                timeout=deadline,
            )
        )
        if not booked:
            raise TimeBankError(ErrorKind.INVALID_STATE, "This service is no longer available")

        record = ServiceRequest(
            service_id=service_id,
            requester_id=user.uid,
            requester_name=user.display_name or user.email or "",
            provider_id=service.provider_id,
            status=RequestStatus.PENDING,
            message=form.message,
            created_at=now,
            updated_at=now,
        )
        try:
            doc_id = self._write(
                lambda deadline: self.store.create(
                    REQUESTS_COLLECTION, to_document(record), timeout=deadline
                )
            )
        except TimeBankError:
            self._release_service(service_id)
            raise
        return replace(record, id=doc_id)

    def _release_service(self, service_id: str) -> None:
        try:
            self._write(
                lambda deadline: self.store.update(
                    SERVICES_COLLECTION,
                    service_id,
                    {"status": ServiceStatus.AVAILABLE.value, "updatedAt": self._now_iso()},
                    timeout=deadline,
                )
            )
        except TimeBankError as e:
            logger.error("Could not release booking on service %s: %s", service_id, e)

    def update_service_request(
        self,
        user: Optional[AuthUser],
        request_id: str,
        *,
        status: Optional[RequestStatus] = None,
        message: Optional[str] = None,
    ) -> ServiceRequest:
        """
        Moves a request through its lifecycle or edits its message.

        Only the provider accepts or rejects; either party may complete.
        Rejecting frees the service again; completing settles credits.
        """
        user = _require_user(user, "update a request")
        request = self.get_request(request_id)
        if user.uid not in (request.provider_id, request.requester_id):
            raise TimeBankError(
                ErrorKind.PERMISSION_DENIED, "You are not part of this service request"
            )

        if message is not None:
            form = validate_form(RequestForm, message=message)
            self._write(
                lambda deadline: self.store.update(
                    REQUESTS_COLLECTION,
                    request_id,
                    {"message": form.message, "updatedAt": self._now_iso()},
                    timeout=deadline,
                )
            )

        if status is None or status == request.status:
            return self.get_request(request_id)

        if status == RequestStatus.COMPLETED:
            return self.complete_request(request_id)

        if user.uid != request.provider_id:
            raise TimeBankError(
                ErrorKind.PERMISSION_DENIED, "Only the provider can accept or reject a request"
            )

        now = self._now_iso()
        if status == RequestStatus.ACCEPTED:
            allowed = frozenset({RequestStatus.PENDING.value})
            writes = [
                UpdateWrite(
                    REQUESTS_COLLECTION, request_id, {"status": status.value, "updatedAt": now}
                )
            ]
        elif status == RequestStatus.REJECTED:
            allowed = frozenset(s.value for s in ACTIVE_REQUEST_STATUSES)
            writes = [
                UpdateWrite(
                    REQUESTS_COLLECTION, request_id, {"status": status.value, "updatedAt": now}
                ),
                UpdateWrite(
                    SERVICES_COLLECTION,
                    request.service_id,
                    {"status": ServiceStatus.AVAILABLE.value, "updatedAt": now},
                ),
            ]
        else:
            raise TimeBankError(
                ErrorKind.INVALID_STATE, f"A request cannot go back to {status.value}"
            )

        applied = self._write(
            lambda deadline: self.store.commit_if(
                Guard(REQUESTS_COLLECTION, request_id, "status", allowed),
                writes,
                timeout=deadline,
            )
        )
        if not applied:
            raise TimeBankError(
                ErrorKind.INVALID_STATE,
                f"A {request.status.value} request cannot be {status.value}",
            )
        return self.get_request(request_id)

    def complete_request(self, request_id: str) -> ServiceRequest:
        """
        Marks a request completed and settles its credits in one commit.

        The provider gains the service's `hours_required` in credits and one
        service offered; the requester loses the same credits and gains one
        service received. The commit only applies while the request is still
        pending or accepted, so settling twice is a no-op.
        """
        request = self.get_request(request_id)
        if request.status == RequestStatus.COMPLETED:
            logger.info("Request %s already completed, nothing to settle", request_id)
            return request
        if request.status == RequestStatus.REJECTED:
            raise TimeBankError(
                ErrorKind.INVALID_STATE, "A rejected request cannot be completed"
            )

        service = self.get_service(request.service_id)
        hours = service.hours_required
        now = self._now_iso()
        writes = [
            UpdateWrite(
                REQUESTS_COLLECTION,
                request_id,
                {
                    "status": RequestStatus.COMPLETED.value,
                    "completedAt": now,
                    "updatedAt": now,
                },
            ),
            UpdateWrite(
                SERVICES_COLLECTION,
                service.id,
                {"status": ServiceStatus.COMPLETED.value, "updatedAt": now},
            ),
            UpdateWrite(
                USERS_COLLECTION,
                request.provider_id,
                {"timeCredits": Increment(hours), "servicesOffered": Increment(1)},
            ),
            UpdateWrite(
                USERS_COLLECTION,
                request.requester_id,
                {"timeCredits": Increment(-hours), "servicesReceived": Increment(1)},
            ),
        ]
        settled = self._write(
            lambda deadline: self.store.commit_if(
                Guard(
                    REQUESTS_COLLECTION,
                    request_id,
                    "status",
                    frozenset(s.value for s in ACTIVE_REQUEST_STATUSES),
                ),
                writes,
                timeout=deadline,
            )
        )
        if settled:
            logger.info(
                "Settled request %s: %s credits from %s to %s",
                request_id,
                hours,
                request.requester_id,
                request.provider_id,
            )
        else:
            logger.info("Request %s changed state before settlement, skipped", request_id)
        self.users_cache.invalidate(request.provider_id)
        self.users_cache.invalidate(request.requester_id)
        return self.get_request(request_id)

    def get_requests_by_user(self, user_id: str) -> list[ServiceRequest]:
        """Requests where the user is the requester, then where they provide."""
        results: list[ServiceRequest] = []
        for role, field_name in (("requester", "requesterId"), ("provider", "providerId")):
            snapshots = self._read(
                lambda deadline: self.store.query(
                    REQUESTS_COLLECTION,
                    filters=[(field_name, user_id)],
                    order_by="createdAt",
                    descending=True,
                    timeout=deadline,
                )
            )
            results.extend(
                replace(from_document(ServiceRequest, snap.id, snap.data), role=role)
                for snap in snapshots
            )
        return results

    # Reviews

    def add_review(
        self,
        user: Optional[AuthUser],
        service_id: str,
        rating: int,
        comment: str,
    ) -> ServiceReview:
        """Stores a review and recomputes the provider's average rating."""
        user = _require_user(user, "review a service")
        form = validate_form(ReviewForm, rating=rating, comment=comment)
        service = self.get_service(service_id)
        if service.provider_id == user.uid:
            raise TimeBankError(ErrorKind.INVALID_STATE, "You cannot review your own service")

        review = ServiceReview(
            service_id=service_id,
            reviewer_id=user.uid,
            reviewer_name=user.display_name or user.email or "",
            provider_id=service.provider_id,
            rating=form.rating,
            comment=form.comment,
            created_at=self._now_iso(),
        )
        doc_id = self._write(
            lambda deadline: self.store.create(
                REVIEWS_COLLECTION, to_document(review), timeout=deadline
            )
        )

        ratings = [r.rating for r in self.get_provider_reviews(service.provider_id)]
        average = sum(ratings) / len(ratings) if ratings else float(form.rating)
        self._write(
            lambda deadline: self.store.update(
                USERS_COLLECTION,
                service.provider_id,
                {"averageRating": average},
                timeout=deadline,
            )
        )
        self.users_cache.invalidate(service.provider_id)
        return replace(review, id=doc_id)

    def _reviews_where(self, field_name: str, value: str) -> list[ServiceReview]:
        snapshots = self._read(
            lambda deadline: self.store.query(
                REVIEWS_COLLECTION,
                filters=[(field_name, value)],
                order_by="createdAt",
                descending=True,
                timeout=deadline,
            )
        )
        return [from_document(ServiceReview, snap.id, snap.data) for snap in snapshots]

    def get_service_reviews(self, service_id: str) -> list[ServiceReview]:
        return self._reviews_where("serviceId", service_id)

    def get_provider_reviews(self, provider_id: str) -> list[ServiceReview]:
        return self._reviews_where("providerId", provider_id)

    # User records

    @staticmethod
    def default_user_record(user: AuthUser) -> UserData:
        """The record a member starts with, built from their identity."""
        return UserData(
            uid=user.uid,
            email=user.email,
            display_name=user.display_name,
            photo_url=user.photo_url,
            email_verified=user.email_verified,
        )

    def get_user_data(
        self, user_id: str, current_user: Optional[AuthUser] = None
    ) -> Optional[UserData]:
        """
        Loads a user record: fresh cache, then the database, then (on
        connectivity failures) stale cache, then defaults synthesized for
        the signed-in member. A missing record for the signed-in member is
        created from those defaults.
        """
        cached = self.users_cache.get_fresh(user_id)
        if cached is not None:
            return copy.deepcopy(cached)

        fallback = None
        if current_user is not None and current_user.uid == user_id:
            fallback = self.default_user_record(current_user)

        try:
            snapshot = self._read(
                lambda deadline: self.store.get(USERS_COLLECTION, user_id, timeout=deadline)
            )
        except TimeBankError as e:
            if not e.is_connectivity:
                raise
            stale = self.users_cache.get_stale(user_id)
            if stale is not None:
                logger.warning("User lookup failed (%s), using cached record", e.kind.value)
                return copy.deepcopy(stale)
            if fallback is not None:
                logger.warning("User lookup failed (%s), using default record", e.kind.value)
                return fallback
            logger.error("Unable to load user %s: %s", user_id, e.message)
            return None

        if snapshot is not None:
            data = dict(snapshot.data)
            data.setdefault("uid", user_id)
            record = from_document(UserData, None, data)
            self.users_cache.put(user_id, record)
            return copy.deepcopy(record)

        if fallback is None:
            return None

        try:
            self.create_user_record(fallback)
        except TimeBankError as e:
            logger.warning("Failed to create user document, using fallback data: %s", e)
            return fallback
        return fallback

    def create_user_record(self, record: UserData) -> UserData:
        record = replace(record, created_at=record.created_at or self._now_iso())
        self._write(
            lambda deadline: self.store.set(
                USERS_COLLECTION, record.uid, to_document(record), timeout=deadline
            )
        )
        self.users_cache.put(record.uid, record)
        return record

    def update_email_verification_status(self, user_id: str, verified: bool) -> None:
        self._write(
            lambda deadline: self.store.set(
                USERS_COLLECTION,
                user_id,
                {"emailVerified": verified},
                merge=True,
                timeout=deadline,
            )
        )
        self.users_cache.invalidate(user_id)

    def delete_user_record(self, user_id: str) -> None:
        self._write(
            lambda deadline: self.store.delete(USERS_COLLECTION, user_id, timeout=deadline)
        )
        self.users_cache.invalidate(user_id)
