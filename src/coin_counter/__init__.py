"""
Live coin counter.

Reads frames from a camera, runs a pluggable coin detector with
at-most-one-in-flight admission, and draws the detections and a running
count onto a display window.
"""

__version__ = "0.1.0"
