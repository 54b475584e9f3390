[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pubdex"
version = "0.1.0"
description = "Bitcoin public key indexer that maps addresses to the public keys that control them, with a small JSON API."
requires-python = ">=3.11"
dependencies = [
    "flask",
    "requests",
    "pycryptodome",
    "termcolor",
]
keywords = ["bitcoin", "indexer", "public-key", "address", "p2pkh", "p2wpkh", "p2tr", "json-rpc"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
pubdex = "pubdex.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pubdex"]

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
