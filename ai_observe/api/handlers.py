"""
Request handlers for the completion and metrics endpoints.

Handlers take a decoded JSON body and return a status code with a
JSON-serializable body, so any web framework can mount them.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from ai_observe.config.loader import get_config
from ai_observe.core.aggregator import collect_metrics
from ai_observe.errors import ProviderError, StorageError, ValidationError
from ai_observe.sdk.openai_client import ObservedOpenAI
from ai_observe.storage.repository import CallRepository, get_repository

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_SERVER_ERROR = 500

MISSING_INPUT_MESSAGE = "Missing prompt or model"
INTERNAL_ERROR_MESSAGE = "Internal server error"


@dataclass(frozen=True)
class ApiResponse:
    """Status code and JSON body returned by a handler."""
    status_code: int
    body: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def _shared_repository() -> CallRepository:
    """Shared repository for the configured path, with its schema in place."""
    repository = get_repository(get_config().db_path)
    repository.initialize_schema()
    return repository


def handle_completion(body: Any, gateway: Optional[ObservedOpenAI] = None) -> ApiResponse:
    """Handle a completion request of the form {prompt, model}.

    Returns 400 when prompt or model is missing, 500 with the provider's
    message when the provider call fails, and a generic 500 for storage or
    unexpected failures.
    """
    if not isinstance(body, dict):
        return ApiResponse(HTTP_BAD_REQUEST, {"error": MISSING_INPUT_MESSAGE})

    prompt = body.get("prompt")
    model = body.get("model")
    if not prompt or not model:
        return ApiResponse(HTTP_BAD_REQUEST, {"error": MISSING_INPUT_MESSAGE})

    try:
        gateway = gateway or ObservedOpenAI(repository=_shared_repository())
        result = gateway.complete(prompt, model)
    except ValidationError:
        return ApiResponse(HTTP_BAD_REQUEST, {"error": MISSING_INPUT_MESSAGE})
    except ProviderError as e:
        return ApiResponse(HTTP_SERVER_ERROR, {"error": e.message})
    except StorageError as e:
        logger.error("Completion request failed to persist: {}", e)
        return ApiResponse(HTTP_SERVER_ERROR, {"error": INTERNAL_ERROR_MESSAGE})
    except Exception as e:
        logger.exception("Unexpected completion failure: {}", e)
        return ApiResponse(HTTP_SERVER_ERROR, {"error": INTERNAL_ERROR_MESSAGE})

    return ApiResponse(HTTP_OK, result.to_dict())


def handle_metrics(
    repository: Optional[CallRepository] = None,
    limit: Optional[int] = None
) -> ApiResponse:
    """Handle a metrics read.

    Returns the recent requests (newest first), aggregate statistics and,
    when available, the latest decoded token breakdown with its model.
    """
    limit = limit or get_config().dashboard.recent_limit

    try:
        repository = repository or _shared_repository()
        snapshot = collect_metrics(repository, limit)
    except StorageError as e:
        logger.error("Metrics read failed: {}", e)
        return ApiResponse(
            HTTP_SERVER_ERROR,
            {"error": INTERNAL_ERROR_MESSAGE, "details": str(e)}
        )

    return ApiResponse(HTTP_OK, snapshot.to_dict())
