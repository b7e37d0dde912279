"""A small teaching operating system modelled in Python: disk images, buffer cache, log, file system, pipes, console, keyboard, processes and a few user tools."""

__version__ = "0.1.0"