[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "toxictl"
version = "2.0.0"
description = "Client library and command-line tool for the HTTP API of a fault-injecting TCP proxy"
requires-python = ">=3.10"
dependencies = []
keywords = ["proxy", "testing", "resilience", "fault-injection", "network", "chaos"]
classifiers = [
    "Development Status :: 5 - Production/Stable",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
toxictl = "toxictl.cli:main"
toxiproxy-cli = "toxictl.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["toxictl"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
