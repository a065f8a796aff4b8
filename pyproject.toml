[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "deliveryencoder"
version = "0.1.0"
description = "Desktop tool that renders a video with an overlay into 16-bit PNG frame sequences using FFmpeg"
requires-python = ">=3.10"
dependencies = []
keywords = ["ffmpeg", "video", "png", "frames", "overlay", "encoding"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: X11 Applications",
    "Environment :: Win32 (MS Windows)",
    "Environment :: MacOS X",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video :: Conversion",
]

[project.optional-dependencies]
test = ["pytest"]

[project.gui-scripts]
delivery-encoder = "deliveryencoder.gui:main"

[tool.hatch.build.targets.wheel]
packages = ["deliveryencoder"]

[tool.pytest.ini_options]
addopts = "-ra"
