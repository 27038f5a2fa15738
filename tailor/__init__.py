"""Client, data types, state store and command line tool for the tailord daemon."""

__version__ = "0.3.1"