[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "librarian"
version = "0.1.0"
description = "Document ingestion building blocks: extract, chunk, embed, index and track books, papers and code."
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "embeddings",
    "chunking",
    "ingestion",
    "retrieval",
    "manifest",
    "snapshots",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Indexing",
    "Topic :: Scientific/Engineering :: Information Analysis",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["librarian"]

[tool.hatch.build.targets.sdist]
include = [
    "librarian",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
