"""The grep client: splits input into chunks, fans them out and merges a quorum of answers."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO

import grpc

from .config import Config, ConfigError, get_config, parse_duration
from .handler import METHOD_PATH, ChunkRequest, ChunkResponse, decode_response, encode_request
from .models import GrepConfig, GrepOptions, Match, Result, Task

_USAGE = "usage: grep [flags] pattern [files...]"


class QuorumError(Exception):
    """Raised when too few servers answered successfully."""


class QuorumClient:
    """Distributes a grep over several servers and accepts the answer of a majority."""

    def __init__(self, config: Config) -> None:
        self.servers = list(config.client.server_list)
        self.quorum = len(self.servers) // 2 + 1
        try:
            self.timeout = parse_duration(config.client.timeout)
        except ConfigError:
            self.timeout = 0.0
        self.chunk_size = config.client.chunk_size

    def process_file(
        self, filename: str, options: GrepOptions, out: BinaryIO | None = None
    ) -> None:
        """Search ``filename`` (``-`` for stdin) across the servers and write the result to ``out``.

        Raises OSError if the input cannot be read and QuorumError if too few servers answered.
        """
        lines = self.read_input(filename)
        tasks = self.split_data(lines, len(self.servers), options)
        results, errors = self.send_to_servers(tasks)
        matches = self.wait_for_quorum(results, errors)

        stream = out if out is not None else sys.stdout.buffer
        stream.write(format_results(matches, options))
        stream.flush()

    def read_input(self, filename: str) -> list[bytes]:
        """Read the lines of a file, or of stdin for ``-`` or an empty name."""
        if filename in ("-", ""):
            data = sys.stdin.buffer.read()
        else:
            with open(filename, "rb") as stream:
                data = stream.read()

        lines = data.split(b"\n")
        if lines and not lines[-1]:
            lines.pop()
        return [line[:-1] if line.endswith(b"\r") else line for line in lines]

    def split_data(
        self, lines: Sequence[bytes], num_servers: int, options: GrepOptions
    ) -> list[Task]:
        """Cut ``lines`` into one task per server, overlapping by the context width."""
        if num_servers <= 0:
            raise ValueError("at least one server is required")

        line_len = len(lines)
        chunk_size = self.chunk_size
        if chunk_size <= 0 or chunk_size > line_len:
            chunk_size = max(line_len // num_servers, 1)
        overlap = options.context_overlap()

        tasks: list[Task] = []
        for index in range(num_servers):
            last = index == num_servers - 1
            start = index * chunk_size
            end = line_len if last else start + chunk_size
            if index > 0:
                start = max(start - overlap, 0)
            if not last:
                end = min(end + overlap, line_len)

            if start >= line_len:
                tasks.append(Task())
                continue
            tasks.append(
                Task(
                    data=b"\n".join(lines[start:end]),
                    index=index,
                    line_numbers=list(range(start + 1, end + 1)),
                    options=options,
                )
            )
        return tasks

    def build_request(self, task_id: int, task: Task) -> ChunkRequest:
        """Turn a task into the request sent to a server."""
        return ChunkRequest(
            task_id=f"task-{task_id}",
            data=task.data,
            chunk_index=task.index,
            line_numbers=list(task.line_numbers),
            options=task.options,
        )

    def _send(self, index: int, task: Task) -> Result:
        server = self.servers[index % len(self.servers)]
        request = self.build_request(index, task)
        try:
            with grpc.insecure_channel(server) as channel:
                call = channel.unary_unary(
                    METHOD_PATH,
                    request_serializer=encode_request,
                    response_deserializer=decode_response,
                )
                response: ChunkResponse = call(request, timeout=self.timeout)
        except (grpc.RpcError, ValueError) as exc:
            raise QuorumError(
                f"processing chunk {index} on server {server} failed: {exc}"
            ) from exc

        return Result(
            matches=list(response.matches),
            match_count=response.match_count,
            error=response.error,
            task_index=index,
        )

    def send_to_servers(
        self, tasks: Sequence[Task]
    ) -> tuple[list[Result], list[BaseException | None]]:
        """Send every task concurrently; return results and errors side by side."""
        if not tasks:
            return [], []
        with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
            futures = [pool.submit(self._send, index, task) for index, task in enumerate(tasks)]

        results: list[Result] = []
        errors: list[BaseException | None] = []
        for future in futures:
            error = future.exception()
            errors.append(error)
            results.append(Result() if error is not None else future.result())
        return results, errors

    def wait_for_quorum(
        self, results: Sequence[Result], errors: Sequence[BaseException | None]
    ) -> list[Match]:
        """Merge successful results, one line per number, sorted by line number.

        Raises QuorumError if fewer than a majority of servers succeeded.
        """
        success = 0
        merged: dict[int, Match] = {}
        for result, error in zip(results, errors):
            if error is not None:
                continue
            for match in result.matches:
                merged.setdefault(match.line_number, match)
            success += 1

        if success < self.quorum:
            raise QuorumError(
                f"not enough successful results: {success} of {self.quorum} required"
            )
        return sorted(merged.values(), key=lambda match: match.line_number)


def format_results(matches: Sequence[Match], options: GrepOptions) -> bytes:
    """Render matches the way they are printed: a count, or one line each."""
    if options.count:
        return f"{len(matches)}\n".encode()
    return b"".join(
        (f"{match.line_number}:".encode() if options.line_num else b"") + match.content + b"\n"
        for match in matches
    )


def parse_args(argv: Sequence[str] | None = None) -> GrepConfig:
    """Parse command-line flags, the pattern and the files.

    Raises ValueError if no pattern is given.
    """
    parser = argparse.ArgumentParser(prog="mygrep", usage=_USAGE)
    parser.add_argument("-A", dest="after", type=int, default=0, help="print N lines after each match")
    parser.add_argument("-B", dest="before", type=int, default=0, help="print N lines before each match")
    parser.add_argument("-C", dest="around", type=int, default=0, help="print N lines around each match")
    parser.add_argument("-c", dest="count", action="store_true", help="print only the number of lines")
    parser.add_argument("-i", dest="ignore_case", action="store_true", help="ignore case")
    parser.add_argument("-v", dest="invert", action="store_true", help="select non-matching lines")
    parser.add_argument("-F", dest="fixed", action="store_true", help="treat the pattern as a fixed string")
    parser.add_argument("-n", dest="line_num", action="store_true", help="print line numbers")
    parser.add_argument("rest", nargs=argparse.REMAINDER)
    args = parser.parse_args(argv)

    if not args.rest:
        raise ValueError("a pattern must be given")

    pattern, *files = args.rest
    options = GrepOptions(
        pattern=pattern,
        after=args.after,
        before=args.before,
        around=args.around,
        count=args.count,
        ignore_case=args.ignore_case,
        invert=args.invert,
        fixed=args.fixed,
        line_num=args.line_num,
    )
    return GrepConfig(options=options, files=files or ["-"])


def main(argv: Sequence[str] | None = None) -> int:
    """Run the distributed grep over each file named on the command line."""
    try:
        grep_config = parse_args(argv)
    except ValueError as exc:
        print(f"mygrep: {exc}", file=sys.stderr)
        print(_USAGE, file=sys.stderr)
        return 1

    try:
        config = get_config()
    except ConfigError as exc:
        print(f"mygrep: configuration: {exc}", file=sys.stderr)
        return 1

    client = QuorumClient(config)
    for filename in grep_config.files:
        try:
            client.process_file(filename, grep_config.options)
        except (OSError, QuorumError, ValueError) as exc:
            print(f"mygrep: {filename}: {exc}", file=sys.stderr)
    return 0