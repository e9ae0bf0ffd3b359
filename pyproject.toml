[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kitnet"
version = "0.1.0"
description = "Small networking toolkit: asyncio-driven TCP and UDP endpoints, a timer queue, time stamps, base32/base64url codecs and JSON content conversion."
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "tcp", "udp", "asyncio", "timer", "base32", "base64url"]
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
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["kitnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
