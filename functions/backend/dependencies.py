"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials, firestore

from backend.accounts import AccountService
from backend.config import Settings, get_settings
from backend.connectivity import ConnectivityProbe, StaticNetworkState
from backend.db import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore
from backend.identity import FirebaseIdentityClient, IdentityClient, InMemoryIdentityClient
from backend.services import TimeBankService
from backend.storage import (
    InMemoryLocalStorage,
    JsonFileLocalStorage,
    LocalStorage,
    RedisLocalStorage,
)

logger = logging.getLogger(__name__)

_firebase_app: firebase_admin.App | None = None
_document_store: DocumentStore | None = None
_identity_client: IdentityClient | None = None
_local_storage: LocalStorage | None = None
_network_state: StaticNetworkState | None = None
_data_access: TimeBankService | None = None
_accounts: AccountService | None = None


def _use_in_memory(settings: Settings) -> bool:
    return settings.use_in_memory_backends or not settings.firebase_project_id


def get_firebase_app() -> firebase_admin.App:
    """
    Return the process-wide Firebase app, initializing it on first use.
    """
    global _firebase_app
    if _firebase_app:
        return _firebase_app

    settings = get_settings()
    if settings.firebase_credentials_path:
        credential = credentials.Certificate(settings.firebase_credentials_path)
    else:
        credential = credentials.ApplicationDefault()
    _firebase_app = firebase_admin.initialize_app(
        credential, {"projectId": settings.firebase_project_id}
    )
    logger.info("Initialized Firebase app for project %s", settings.firebase_project_id)
    return _firebase_app


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so in-memory state persists across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if _use_in_memory(settings):
        _document_store = InMemoryDocumentStore()
    else:
        _document_store = FirestoreDocumentStore(firestore.client(app=get_firebase_app()))
    return _document_store


def get_identity_client() -> IdentityClient:
    global _identity_client
    if _identity_client:
        return _identity_client

    settings = get_settings()
    if _use_in_memory(settings) or not settings.firebase_api_key:
        _identity_client = InMemoryIdentityClient()
    else:
        _identity_client = FirebaseIdentityClient(
            api_key=settings.firebase_api_key,
            base_url=settings.identity_toolkit_url,
            timeout=settings.identity_timeout_seconds,
            app=get_firebase_app(),
        )
    return _identity_client


def get_local_storage() -> LocalStorage:
    global _local_storage
    if _local_storage:
        return _local_storage

    settings = get_settings()
    if settings.local_storage_backend == "redis" and settings.redis_url:
        _local_storage = RedisLocalStorage(
            url=settings.redis_url, key_prefix=settings.redis_key_prefix
        )
    elif settings.local_storage_backend == "file":
        _local_storage = JsonFileLocalStorage(settings.local_storage_path)
    else:
        _local_storage = InMemoryLocalStorage()
    return _local_storage


def get_network_state() -> StaticNetworkState:
    global _network_state
    if _network_state:
        return _network_state

    _network_state = StaticNetworkState(online=not get_settings().offline_mode)
    return _network_state


def get_data_access() -> TimeBankService:
    """
    Return the singleton data-access service; it owns the process-wide caches.
    """
    global _data_access
    if _data_access:
        return _data_access

    settings = get_settings()
    store = get_document_store()
    probe = ConnectivityProbe(
        store,
        get_network_state(),
        probe_timeout=settings.probe_timeout_seconds,
        ping_timeout=settings.ping_timeout_seconds,
    )
    _data_access = TimeBankService.from_settings(
        settings, store, get_local_storage(), probe
    )
    return _data_access


def get_accounts() -> AccountService:
    global _accounts
    if _accounts:
        return _accounts

    _accounts = AccountService(
        get_identity_client(), get_data_access(), get_settings().app_origin
    )
    return _accounts
