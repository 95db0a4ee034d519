"""Scalar: manage large git enlistments."""

__version__ = "0.1.0"
