"""Virtual Boy hardware components: timer, pad, sound unit, video processor, save states and options."""

__version__ = "0.1.0"