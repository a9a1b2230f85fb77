"""The grep gRPC server and its command."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from concurrent.futures import ThreadPoolExecutor

import grpc

from .config import GRPCServerConfig
from .grepsvc import RegexGrepService
from .handler import GrepHandler

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 30.0
DEFAULT_PORT = 50051
_MAX_WORKERS = 10


class ServerError(Exception):
    """Raised when the server cannot listen or fails to shut down in time."""


class GrepServer:
    """A gRPC server that runs until told to stop, then shuts down gracefully."""

    def __init__(self, config: GRPCServerConfig) -> None:
        self.address = f"[::]:{config.port}"
        self.grpc_server = grpc.server(
            ThreadPoolExecutor(max_workers=_MAX_WORKERS),
            options=[("grpc.so_reuseport", 0)],
        )
        self.port: int | None = None
        self.started = threading.Event()

    def run(self, stop_event: threading.Event) -> None:
        """Serve until ``stop_event`` is set.

        Raises ServerError if the address cannot be bound or shutdown times out.
        """
        try:
            port = self.grpc_server.add_insecure_port(self.address)
        except RuntimeError as exc:
            raise ServerError(f"listen {self.address}: {exc}") from exc
        if not port:
            raise ServerError(f"listen {self.address}: address could not be bound")
        self.port = port

        self.grpc_server.start()
        logger.info("gRPC server listening on %s (port %d)", self.address, port)
        self.started.set()

        while not stop_event.wait(0.5):
            pass

        logger.info("stop requested, shutting down gracefully")
        done = self.grpc_server.stop(SHUTDOWN_TIMEOUT)
        if not done.wait(SHUTDOWN_TIMEOUT):
            logger.warning("gRPC server stopped after shutdown timeout")
            self.grpc_server.stop(None)
            raise ServerError("graceful shutdown timed out")
        logger.info("gRPC server stopped")


def run_server(config: GRPCServerConfig, stop_event: threading.Event) -> None:
    """Wire the grep service into a server and run it until ``stop_event`` is set."""
    handler = GrepHandler(RegexGrepService())
    server = GrepServer(config)
    server.grpc_server.add_generic_rpc_handlers((handler.rpc_handler(),))
    server.run(stop_event)


def main(argv: list[str] | None = None) -> int:
    """Start the grep server; stops on SIGINT or SIGTERM."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(prog="grep-server", description="Serve grep requests over gRPC.")
    parser.add_argument("-port", "--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    args = parser.parse_args(argv)

    logger.info("starting grep server")
    config = GRPCServerConfig(port=args.port)
    logger.info("cfg: %s", config)

    stop_event = threading.Event()

    def _request_stop(signum: int, frame: object) -> None:
        stop_event.set()

    previous = {sig: signal.signal(sig, _request_stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        run_server(config, stop_event)
    except ServerError as exc:
        logger.critical("server failed: %s", exc)
        return 1
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0