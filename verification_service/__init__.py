"""
Verification Service - Live Face Comparison

Enrolls a reference face from a still image and compares a live video
stream against it, gated by a sustained single-face positioning check.
"""

__version__ = "1.0.0"
__author__ = "Verification Service Team"
