[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pgflex"
version = "0.1.0"
description = "Helpers for a replicated PostgreSQL cluster: Barman backup settings and scheduling, restore targets, health checks and admin SQL."
requires-python = ">=3.10"
dependencies = []
keywords = ["postgresql", "barman", "backup", "restore", "replication", "health-check"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: System :: Archiving :: Backup",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pgflex-failover-validation = "pgflex.failover:main"

[tool.hatch.build.targets.wheel]
packages = ["pgflex"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
