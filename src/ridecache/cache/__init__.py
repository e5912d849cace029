"""Cache layer.

This package is the single source of truth for the current ride of each
user: durable persistence, live change notification, and field patches
from in-process callers and the remote sync feed.
"""
