[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "quorumgrep"
version = "0.1.0"
description = "Distributed grep: a client splits input into chunks, sends them to gRPC workers and accepts the result once a majority of workers answer."
requires-python = ">=3.10"
keywords = ["grep", "grpc", "quorum", "distributed", "search"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Text Processing :: Filters",
]
dependencies = [
    "grpcio",
    "msgpack",
    "pyyaml",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
quorumgrep = "quorumgrep.client:main"
quorumgrep-server = "quorumgrep.server:main"

[tool.hatch.build.targets.wheel]
packages = ["quorumgrep"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
