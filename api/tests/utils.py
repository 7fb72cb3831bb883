"""Test helpers."""
import copy
from typing import Optional

from dairyfarm.constants import Collections, DEFAULT_FARM_SETTINGS
from dairyfarm.security import IdentityProvider
from dairyfarm.services.accounts import provision_user
from dairyfarm.store import DocumentStore

PASSWORD = "password123"


def create_farm(db_session_factory, location: str, name: str) -> dict:
    session = db_session_factory()
    try:
        return DocumentStore(session).create(Collections.FARMS, {
            "name": name,
            "location": location,
            "isActive": True,
            "specialization": ["dairy"],
            "settings": copy.deepcopy(DEFAULT_FARM_SETTINGS),
        })
    finally:
        session.close()


def create_user(
    db_session_factory,
    email: str,
    role: str,
    *,
    assigned_farm: Optional[str] = None,
    password: str = PASSWORD,
    is_active: bool = True,
) -> dict:
    session = db_session_factory()
    try:
        return provision_user(
            IdentityProvider(session),
            DocumentStore(session),
            email=email,
            password=password,
            first_name="Test",
            last_name=role.title(),
            role=role,
            assigned_farm=assigned_farm,
            is_active=is_active,
        )
    finally:
        session.close()


def insert(db_session_factory, collection: str, doc: dict) -> dict:
    """Write a document directly, bypassing the API."""
    session = db_session_factory()
    try:
        return DocumentStore(session).create(collection, doc)
    finally:
        session.close()


def fetch(db_session_factory, collection: str, doc_id: str) -> Optional[dict]:
    session = db_session_factory()
    try:
        return DocumentStore(session).get_by_id(collection, doc_id)
    finally:
        session.close()


def find(db_session_factory, collection: str, filters: Optional[dict] = None) -> list:
    session = db_session_factory()
    try:
        return DocumentStore(session).list(collection, filters)
    finally:
        session.close()


def login(client, email: str, password: str) -> str:
    response = client.post(
        "/auth/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def cow_payload(name: str = "Daisy", farm: str = "nakuru", **overrides) -> dict:
    payload = {
        "name": name,
        "breed": "Friesian",
        "dateOfBirth": "2020-03-15",
        "farmLocation": farm,
    }
    payload.update(overrides)
    return payload


def create_cow(client, headers, name: str = "Daisy", farm: str = "nakuru", **overrides) -> dict:
    response = client.post("/cows", json=cow_payload(name, farm, **overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["cow"]


def create_batch(client, headers, batch_id: str = "B-001", farm: str = "nakuru", **overrides) -> dict:
    payload = {
        "batchId": batch_id,
        "initialCount": 100,
        "dateAcquired": "2024-01-01",
        "farmLocation": farm,
        "breed": "Kienyeji",
    }
    payload.update(overrides)
    response = client.post("/chicken/batches", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["batch"]
