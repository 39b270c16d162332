"""Santa's Elf agent: a tool-using reasoning loop with a self-reviewing critic."""

__version__ = "0.3.0"
