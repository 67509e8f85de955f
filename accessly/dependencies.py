"""FastAPI dependency providers for the service collaborators."""

from typing import Any, Dict

from fastapi import Request

from accessly.checker_client import PrepClient, get_checker_client
from accessly.exceptions import BadRequest
from accessly.repository import PdfRepository
from accessly.storage import StorageBackend, get_storage

_repository = PdfRepository()


def get_repository() -> PdfRepository:
    return _repository


def get_storage_backend() -> StorageBackend:
    return get_storage()


def get_checker() -> PrepClient:
    return get_checker_client()


async def read_json_body(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    return payload


def require_field(payload: Dict[str, Any], name: str) -> Any:
    value = payload.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise BadRequest(f"Missing {name}")
    return value
