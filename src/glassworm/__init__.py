"""GlassWorm scanner — static detection of malicious JavaScript package code."""

__version__ = "0.1.0"
