"""Build and read VSD filesystem images, with permission and text helpers."""

__version__ = "0.1.0"

__all__ = ["layout", "formatting", "perms", "args", "grep", "image", "vsd", "proto", "reader"]