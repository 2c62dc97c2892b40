[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "helixchain"
version = "1.0.0"
description = "Building blocks for a torque-weighted proof-of-stake chain: crypto, Merkle trees, addresses, consensus, gas and delegation"
requires-python = ">=3.11"
keywords = [
    "blockchain",
    "consensus",
    "proof-of-stake",
    "merkle-tree",
    "keccak",
    "ed25519",
    "gas",
    "delegation",
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
    "Topic :: System :: Distributed Computing",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["helixchain"]

[tool.hatch.build.targets.sdist]
include = ["helixchain", "tests", "README.md"]

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
