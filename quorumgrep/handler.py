"""gRPC-facing handler: wire messages and the ProcessChunk method."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any

import grpc
import msgpack

from .models import GrepOptions, GrepService, Match, Task

logger = logging.getLogger(__name__)

SERVICE_NAME = "grepsvc.GrepService"
METHOD_NAME = "ProcessChunk"
METHOD_PATH = f"/{SERVICE_NAME}/{METHOD_NAME}"

_DEFAULT_OPTIONS = GrepOptions()
_OPTION_FIELDS = tuple(f.name for f in fields(GrepOptions))


@dataclass
class ChunkRequest:
    """A chunk of input sent by the client to one server."""

    task_id: str = ""
    data: bytes = b""
    chunk_index: int = 0
    line_numbers: list[int] = field(default_factory=list)
    options: GrepOptions = field(default_factory=GrepOptions)


@dataclass
class ChunkResponse:
    """The lines a server selected from one chunk."""

    task_id: str = ""
    matches: list[Match] = field(default_factory=list)
    match_count: int = 0
    error: str = ""


def _unpack(data: bytes, what: str) -> dict[str, Any]:
    try:
        document = msgpack.unpackb(data, raw=False)
    except (ValueError, TypeError, msgpack.UnpackException) as exc:
        raise ValueError(f"malformed {what}: {exc}") from exc
    if not isinstance(document, dict):
        raise ValueError(f"malformed {what}: expected a mapping")
    return document


def _typed(document: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = document.get(key, default)
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r}: expected {kind.__name__}, got {value!r}")
    return value


def _options_to_wire(options: GrepOptions) -> dict[str, Any]:
    return {name: getattr(options, name) for name in _OPTION_FIELDS}


def _options_from_wire(document: Any) -> GrepOptions:
    if document is None:
        return GrepOptions()
    if not isinstance(document, dict):
        raise ValueError("field 'options': expected a mapping")
    values = {
        name: _typed(document, name, type(getattr(_DEFAULT_OPTIONS, name)), getattr(_DEFAULT_OPTIONS, name))
        for name in _OPTION_FIELDS
    }
    return GrepOptions(**values)


def encode_request(request: ChunkRequest) -> bytes:
    """Serialise a request for the wire."""
    return msgpack.packb(
        {
            "task_id": request.task_id,
            "data": bytes(request.data),
            "chunk_index": request.chunk_index,
            "line_numbers": list(request.line_numbers),
            "options": _options_to_wire(request.options),
        },
        use_bin_type=True,
    )


def decode_request(data: bytes) -> ChunkRequest:
    """Parse a request received from the wire.

    Raises ValueError if the bytes do not hold a well-formed request.
    """
    document = _unpack(data, "request")
    line_numbers = _typed(document, "line_numbers", list, [])
    if not all(isinstance(number, int) for number in line_numbers):
        raise ValueError("field 'line_numbers': expected integers")
    return ChunkRequest(
        task_id=_typed(document, "task_id", str, ""),
        data=_typed(document, "data", bytes, b""),
        chunk_index=_typed(document, "chunk_index", int, 0),
        line_numbers=list(line_numbers),
        options=_options_from_wire(document.get("options")),
    )


def encode_response(response: ChunkResponse) -> bytes:
    """Serialise a response for the wire."""
    return msgpack.packb(
        {
            "task_id": response.task_id,
            "matches": [[bytes(m.content), m.line_number] for m in response.matches],
            "match_count": response.match_count,
            "error": response.error,
        },
        use_bin_type=True,
    )


def decode_response(data: bytes) -> ChunkResponse:
    """Parse a response received from the wire.

    Raises ValueError if the bytes do not hold a well-formed response.
    """
    document = _unpack(data, "response")
    matches = []
    for item in _typed(document, "matches", list, []):
        if (
            not isinstance(item, list)
            or len(item) != 2
            or not isinstance(item[0], bytes)
            or not isinstance(item[1], int)
        ):
            raise ValueError(f"field 'matches': malformed entry {item!r}")
        matches.append(Match(item[0], item[1]))
    return ChunkResponse(
        task_id=_typed(document, "task_id", str, ""),
        matches=matches,
        match_count=_typed(document, "match_count", int, 0),
        error=_typed(document, "error", str, ""),
    )


class GrepHandler:
    """Serves ProcessChunk calls by delegating to a grep service."""

    def __init__(self, service: GrepService) -> None:
        self._service = service

    def process_chunk(self, request: ChunkRequest, context: Any = None) -> ChunkResponse:
        """Search the chunk in ``request``; a failed search yields an empty response."""
        logger.info(
            "chunk received: task_id=%s chunk_index=%d data_size=%d pattern=%r",
            request.task_id,
            request.chunk_index,
            len(request.data),
            request.options.pattern,
        )
        task = Task(
            data=request.data,
            index=request.chunk_index,
            line_numbers=list(request.line_numbers),
            options=request.options,
        )
        try:
            result = self._service.process_chunk(task)
        except Exception:
            logger.exception("processing chunk failed: task_id=%s", request.task_id)
            return ChunkResponse(task_id=request.task_id)

        matches = list(result.matches)
        logger.info("chunk processed: task_id=%s matches_count=%d", request.task_id, len(matches))
        return ChunkResponse(task_id=request.task_id, matches=matches, match_count=len(matches))

    def rpc_handler(self) -> grpc.GenericRpcHandler:
        """Return a handler that registers this object's methods with a gRPC server."""
        method = grpc.unary_unary_rpc_method_handler(
            self.process_chunk,
            request_deserializer=decode_request,
            response_serializer=encode_response,
        )
        return grpc.method_handlers_generic_handler(SERVICE_NAME, {METHOD_NAME: method})