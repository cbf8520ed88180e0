from typing import Any, Dict, List, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from infrausage.core.errors import DecodeError, HTTPStatusError

ModelT = TypeVar("ModelT", bound=BaseModel)


def error_from_response(response: httpx.Response) -> HTTPStatusError:
    """
    Build an HTTPStatusError from a `{"error": {"code", "message"}}` body.

    A body that is not such an envelope still yields an error, with an empty
    message and no code.
    """
    code = None
    message = ""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        error = payload["error"]
        raw_message = error.get("message")
        if isinstance(raw_message, str):
            message = raw_message
        raw_code = error.get("code")
        if isinstance(raw_code, int) and not isinstance(raw_code, bool):
            code = raw_code

    return HTTPStatusError(response.status_code, message=message, code=code)


def read_data(response: httpx.Response, what: str) -> Dict[str, Any]:
    """Return the `data` object of a `{"data": {...}}` response body."""
    try:
        payload = response.json()
    except ValueError as exc:
        raise DecodeError(f"Cannot decode the response body to {what}: {exc}") from exc

    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object in the response to {what}")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise DecodeError(f"Missing 'data' object in the response to {what}")
    return data


def read_items(response: httpx.Response, key: str, model: Type[ModelT], what: str) -> List[ModelT]:
    """Validate the list stored under `data.<key>`; a missing key is an empty list."""
    data = read_data(response, what)
    items = data.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise DecodeError(f"Expected a list under 'data.{key}' in the response to {what}")

    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as exc:
        raise DecodeError(f"Unexpected entry in the response to {what}: {exc}") from exc
