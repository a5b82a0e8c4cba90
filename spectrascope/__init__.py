"""Spectrogram analysis of WAV audio: short-time FFT, decibel magnitudes, colour-mapped rendering and kernel benchmarking."""

__version__ = "1.0.0"