[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spectrascope"
version = "1.0.0"
description = "Spectrogram analyser for WAV audio: short-time FFT, decibel magnitudes and colour-mapped image rendering"
requires-python = ">=3.10"
keywords = ["spectrogram", "fft", "audio", "stft", "wav", "analysis", "signal-processing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Analysis",
    "Topic :: Scientific/Engineering :: Visualization",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
spectrascope = "spectrascope.app:main"

[tool.hatch.build.targets.wheel]
packages = ["spectrascope"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
