# quorumgrep

A grep that spreads its work across several servers. The client reads a file
or standard input and splits the lines into one chunk per configured server.
Each chunk overlaps its neighbours by as many lines as the context options
need (the largest of `-A`, `-B` and `-C`). The chunks go to worker servers
over gRPC, all at the same time. The client needs successful answers from a
majority of the servers (`len(servers) // 2 + 1`). It then merges their
matches, keeps one line for each line number, sorts them by line number and
prints them.

## Installation

```
pip install .
```

For the tests:

```
pip install .[test]
pytest
```

## Starting workers

Start one server for each address in the client's server list. The default
list is `localhost:50051`, `localhost:50052` and `localhost:50053`:

```
quorumgrep-server --port 50051
quorumgrep-server --port 50052
quorumgrep-server --port 50053
```

`--port` (also accepted as `-port`) defaults to 50051. The server listens on
all interfaces and logs at INFO level. On SIGINT or SIGTERM it stops taking
new calls and waits up to 30 seconds for running calls to finish. If they do
not finish in time, it stops them and exits with status 1. It also exits with
status 1 if the port cannot be bound.

## Searching

```
quorumgrep [flags] pattern [files...]
```

With no files, or with the file `-`, the client reads standard input. A
trailing `\r` is removed from each input line.

| Flag   | Meaning                                                   |
|--------|-----------------------------------------------------------|
| `-A N` | print N lines after each selected line                    |
| `-B N` | print N lines before each selected line                   |
| `-C N` | print N lines before and after; if above 0 it overrides `-A` and `-B` |
| `-c`   | print only the number of output lines, context included   |
| `-i`   | ignore case                                               |
| `-v`   | select lines that do not match                            |
| `-F`   | treat the pattern as a fixed string                       |
| `-n`   | prefix each line with `N:`, its line number               |

The pattern is a Python regular expression. A line is selected if the
expression matches anywhere in it.

Example:

```
quorumgrep -n -C 1 error app.log
```

A file that cannot be read, or a search that gets too few successful answers,
is reported on standard error. The client then moves on to the next file. A
missing pattern prints the usage and exits with status 1.

When a worker cannot compile the pattern, it does not return an error. It
returns an empty answer, and that answer counts towards the majority.

## Configuration

The client reads `config.yaml` and `.env` from the working directory. A file
that is missing or unreadable is logged as a warning and skipped. The
defaults are:

```yaml
LOG_LEVEL: info
CLIENT:
  SERVER_LIST: ["localhost:50051", "localhost:50052", "localhost:50053"]
  TIMEOUT: 30s
  CHUNK_SIZE: 1024
```

YAML keys are matched case-insensitively. Environment variables override
`.env`, and `.env` overrides the YAML file. Nested keys join their parts with
an underscore, as in `CLIENT_TIMEOUT=10s` or
`CLIENT_SERVER_LIST=host1:50051,host2:50051`. `TIMEOUT` takes durations such
as `500ms`, `30s` or `1h15m`, and applies to each call to a server.
`CHUNK_SIZE` sets the lines per chunk. If it is not positive or exceeds the
line count, the lines are divided evenly among the servers. The last chunk
always runs to the end of the input.

`LOG_LEVEL` and `GRPC_SERVER.PORT` are loaded into `Config`. Neither command
uses them: the server takes its port only from `--port`.

## Library use

The search engine works without any network:

```python
from quorumgrep.models import GrepOptions, Task
from quorumgrep.grepsvc import RegexGrepService

task = Task(
    data=b"line1\npattern found\nline3",
    index=0,
    line_numbers=[1, 2, 3],
    options=GrepOptions(pattern="pattern", after=1),
)
result = RegexGrepService().process_chunk(task)
for match in result.matches:
    print(match.line_number, match.content.decode())
```

The modules are:

- `quorumgrep.models`: `GrepOptions`, `GrepConfig`, `Task`, `Match`,
  `Result`, and the `GrepService` protocol.
- `quorumgrep.grepsvc`: `RegexGrepService`, plus the `make_pattern`,
  `match_line`, `context_range` and `find_matches` helpers. An invalid
  pattern raises `ValueError`.
- `quorumgrep.config`: `Config`, `ClientConfig`, `GRPCServerConfig`,
  `get_config`, `parse_duration` and `ConfigError`.
- `quorumgrep.handler`: `ChunkRequest`, `ChunkResponse`, `GrepHandler`, and
  the `encode_request`/`decode_request` and `encode_response`/`decode_response`
  wire functions.
- `quorumgrep.server`: `GrepServer`, `run_server`, `ServerError` and `main`.
- `quorumgrep.client`: `QuorumClient`, `QuorumError`, `format_results`,
  `parse_args` and `main`.

## Limits

Requests and responses are msgpack documents sent over the gRPC method
`/grepsvc.GrepService/ProcessChunk`. There is no protobuf schema. Clients and
workers must therefore both come from this package. Connections are
unencrypted, and the package has no authentication.