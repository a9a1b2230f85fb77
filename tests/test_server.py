import socket
import threading
from contextlib import contextmanager

import grpc
import pytest

from quorumgrep.config import GRPCServerConfig
from quorumgrep.grepsvc import RegexGrepService
from quorumgrep.handler import (
    METHOD_PATH,
    ChunkRequest,
    GrepHandler,
    decode_response,
    encode_request,
)
from quorumgrep.models import GrepOptions, Match
from quorumgrep.server import SHUTDOWN_TIMEOUT, GrepServer, ServerError, main, run_server


def _grep_server(port=0):
    server = GrepServer(GRPCServerConfig(port=port))
    server.grpc_server.add_generic_rpc_handlers((GrepHandler(RegexGrepService()).rpc_handler(),))
    return server


@contextmanager
def _running(target):
    stop = threading.Event()
    errors = []

    def body():
        try:
            target(stop)
        except Exception as exc:
            errors.append(exc)

    thread = threading.Thread(target=body, daemon=True)
    thread.start()
    try:
        yield stop, errors
    finally:
        stop.set()
        thread.join(SHUTDOWN_TIMEOUT + 5)


def _call(port, request):
    with grpc.insecure_channel(f"localhost:{port}") as channel:
        grpc.channel_ready_future(channel).result(timeout=10)
        stub = channel.unary_unary(
            METHOD_PATH, request_serializer=encode_request, response_deserializer=decode_response
        )
        return stub(request, timeout=10)


def _request():
    return ChunkRequest(
        task_id="task-0",
        data=b"line1\npattern found\nline3",
        line_numbers=[1, 2, 3],
        options=GrepOptions(pattern="pattern"),
    )


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_server_answers_process_chunk():
    server = _grep_server()
    with _running(server.run) as (_, errors):
        assert server.started.wait(10)
        response = _call(server.port, _request())
    assert errors == []
    assert response.task_id == "task-0"
    assert response.matches == [Match(b"pattern found", 2)]


def test_run_returns_after_stop_event():
    server = _grep_server()
    stop = threading.Event()
    stop.set()
    server.run(stop)
    assert server.started.is_set()
    assert server.port > 0


def test_second_server_on_same_port_fails():
    first = _grep_server()
    with _running(first.run):
        assert first.started.wait(10)
        second = _grep_server(first.port)
        with pytest.raises(ServerError):
            second.run(threading.Event())
    assert not second.started.is_set()


def test_run_server_serves_requests():
    port = _free_port()
    with _running(lambda stop: run_server(GRPCServerConfig(port=port), stop)) as (_, errors):
        response = _call(port, _request())
    assert errors == []
    assert response.match_count == 1


def test_main_rejects_non_numeric_port():
    with pytest.raises(SystemExit) as info:
        main(["-port", "notanumber"])
    assert info.value.code == 2