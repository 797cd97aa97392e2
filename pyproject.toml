[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rtmplink"
version = "0.1.0"
description = "RTMP connection handling: handshake, chunking, messages and track negotiation"
requires-python = ">=3.10"
dependencies = []
keywords = ["rtmp", "streaming", "amf0", "h264", "h265", "aac", "video"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rtmplink"]

[tool.pytest.ini_options]
addopts = "-ra"
