"""Publish locally edited project data to a remote repository contents API."""

__version__ = "0.4.0"
