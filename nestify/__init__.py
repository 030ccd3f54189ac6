"""Nestify: nested playlist trees on top of the flat Spotify playlist API."""

__version__ = "0.1.0"
