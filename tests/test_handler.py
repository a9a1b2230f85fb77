from collections import namedtuple

import msgpack
import pytest

from quorumgrep.grepsvc import RegexGrepService
from quorumgrep.handler import (
    METHOD_PATH,
    ChunkRequest,
    ChunkResponse,
    GrepHandler,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)
from quorumgrep.models import GrepOptions, Match, Result

CallDetails = namedtuple("CallDetails", ["method", "invocation_metadata"])


class RecordingService:
    def __init__(self):
        self.tasks = []

    def process_chunk(self, task):
        self.tasks.append(task)
        return Result(matches=[Match(b"x", 7)], match_count=1)


class FailingService:
    def process_chunk(self, task):
        raise ValueError("boom")


def _request(**overrides):
    values = dict(
        task_id="task-0",
        data=b"line1\npattern found\nline3",
        chunk_index=0,
        line_numbers=[1, 2, 3],
        options=GrepOptions(pattern="pattern"),
    )
    values.update(overrides)
    return ChunkRequest(**values)


def test_request_round_trip():
    request = _request(options=GrepOptions(pattern="a.b", after=2, ignore_case=True, line_num=True))
    assert decode_request(encode_request(request)) == request


def test_response_round_trip():
    response = ChunkResponse(
        task_id="task-1", matches=[Match(b"one", 1), Match(b"\xff\x00", 5)], match_count=2, error="e"
    )
    assert decode_response(encode_response(response)) == response


def test_decode_request_fills_defaults():
    request = decode_request(msgpack.packb({"task_id": "task-2"}, use_bin_type=True))
    assert request == ChunkRequest(task_id="task-2")


def test_decode_request_rejects_non_mapping():
    with pytest.raises(ValueError):
        decode_request(msgpack.packb([1, 2], use_bin_type=True))


def test_decode_request_rejects_garbage():
    with pytest.raises(ValueError):
        decode_request(b"\xc1")


def test_decode_request_rejects_wrong_field_type():
    with pytest.raises(ValueError):
        decode_request(msgpack.packb({"chunk_index": "zero"}, use_bin_type=True))


def test_decode_response_rejects_bad_match():
    with pytest.raises(ValueError):
        decode_response(msgpack.packb({"matches": [["text", 1]]}, use_bin_type=True))


def test_process_chunk_with_regex_service():
    handler = GrepHandler(RegexGrepService())
    response = handler.process_chunk(_request(), None)
    assert response.task_id == "task-0"
    assert response.matches == [Match(b"pattern found", 2)]
    assert response.match_count == 1


def test_process_chunk_invalid_pattern_gives_empty_response():
    handler = GrepHandler(RegexGrepService())
    response = handler.process_chunk(_request(options=GrepOptions(pattern="[invalid")), None)
    assert response == ChunkResponse(task_id="task-0")


def test_process_chunk_service_failure_keeps_task_id():
    response = GrepHandler(FailingService()).process_chunk(_request(task_id="task-3"), None)
    assert response.task_id == "task-3"
    assert response.matches == []


def test_process_chunk_passes_task_to_service():
    service = RecordingService()
    request = _request(chunk_index=4, line_numbers=[10, 11, 12])
    response = GrepHandler(service).process_chunk(request, None)
    task = service.tasks[0]
    assert task.data == request.data
    assert task.index == 4
    assert task.line_numbers == [10, 11, 12]
    assert task.options == request.options
    assert response.match_count == len(response.matches)


def test_rpc_handler_serves_method_path():
    handler = GrepHandler(RegexGrepService())
    method = handler.rpc_handler().service(CallDetails(METHOD_PATH, ()))
    request = method.request_deserializer(encode_request(_request()))
    response = decode_response(method.response_serializer(method.unary_unary(request, None)))
    assert response.matches == [Match(b"pattern found", 2)]


def test_rpc_handler_ignores_unknown_method():
    handler = GrepHandler(RegexGrepService())
    assert handler.rpc_handler().service(CallDetails("/other.Service/Method", ())) is None