[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "grafanactl"
version = "0.1.0"
description = "Grafana resource model, selectors, secret redaction, folder-aware push/pull/delete orchestration and a live-reload hub"
requires-python = ">=3.10"
dependencies = []
keywords = ["grafana", "dashboards", "folders", "resources", "selectors", "live-reload"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["grafanactl"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
