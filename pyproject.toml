[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "orchflow"
version = "0.1.0"
description = "Transport-agnostic asyncio orchestration engine for terminal sessions, panes and plugins with an event-driven architecture"
requires-python = ">=3.11"
dependencies = []
keywords = ["terminal", "orchestration", "multiplexer", "asyncio", "plugin"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Terminals",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
    "pytest-asyncio>=0.23",
]

[project.scripts]
orchflow-demo = "orchflow.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["orchflow"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
