[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "basnet"
version = "0.1.0"
description = "Building blocks for TCP servers and clients: an incremental HTTP request parser, a blocking socket handler with timeouts, a threaded acceptor and proxy configuration loading"
requires-python = ">=3.10"
dependencies = []
keywords = ["tcp", "server", "http", "parser", "socket", "proxy", "configuration"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["basnet"]

[tool.pytest.ini_options]
addopts = "-ra"
