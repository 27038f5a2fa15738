[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tailor"
version = "0.3.1"
description = "Client library and command line tool for the tailord hardware control daemon"
requires-python = ">=3.10"
dependencies = []
keywords = ["tailord", "fan", "led", "keyboard", "dbus", "laptop", "profiles"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
tailor = "tailor.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["tailor"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
