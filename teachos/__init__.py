"""File system, disk image builder, console, keyboard and user tools of a small teaching operating system."""

__version__ = "0.1.0"