[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ixnet"
version = "0.1.0"
description = "Non-blocking cancellable sockets, TLS, cancellable DNS lookup, URL parsing and a threaded HTTP/1.1 client"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "socket", "client", "dns", "tls", "networking", "url"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ixnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
