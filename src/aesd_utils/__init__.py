"""Coursework command-line utilities: file writers and a command runner."""

__version__ = "0.1.0"
