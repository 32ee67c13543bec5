[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mercurehub"
version = "0.15.5"
description = "Building blocks for a Mercure hub: server-sent events, JWT authorization, hub options, a demo endpoint and configuration"
requires-python = ">=3.11"
keywords = [
    "mercure",
    "server-sent-events",
    "sse",
    "push",
    "jwt",
    "pubsub",
    "realtime",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]
dependencies = [
    "pyjwt>=2.8",
    "cryptography>=41",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[tool.hatch.build.targets.wheel]
packages = ["mercurehub"]

[tool.hatch.build.targets.sdist]
include = [
    "mercurehub",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
