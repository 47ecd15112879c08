[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kritisgate"
version = "0.4.1"
description = "Kubernetes install hooks, resource types and manifest output for image admission control"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kubernetes",
    "admission-webhook",
    "image-security-policy",
    "helm-hooks",
    "kubectl",
    "custom-resources",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: Security",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kritisgate-preinstall = "kritisgate.preinstall:main"
kritisgate-postinstall = "kritisgate.postinstall:main"
kritisgate-predelete = "kritisgate.predelete:main"

[tool.hatch.build.targets.wheel]
packages = ["kritisgate"]

[tool.hatch.build.targets.sdist]
include = ["kritisgate", "tests", "pyproject.toml", "README.md"]

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
warn_redundant_casts = true
