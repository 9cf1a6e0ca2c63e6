[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubegres-ops"
version = "0.1.0"
description = "Deployed-state loading and template tooling for a PostgreSQL cluster operator"
requires-python = ">=3.10"
dependencies = []
keywords = ["postgresql", "kubernetes", "operator", "statefulset", "replication", "cluster"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kubegres-ops-templates = "kubegres_ops.templates:main"

[tool.hatch.build.targets.wheel]
packages = ["kubegres_ops"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
