[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lyracodec"
version = "1.3.2"
description = "Framing, packet-loss concealment and comfort-noise logic for a low-bitrate neural speech codec"
requires-python = ">=3.10"
dependencies = []
keywords = ["audio", "codec", "speech", "packet loss concealment", "comfort noise", "dtx"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Sound/Audio :: Conversion",
    "Topic :: Multimedia :: Sound/Audio :: Speech",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lyracodec"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
