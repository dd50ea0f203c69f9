"""reviewcard - turns film review links into shareable PNG cards."""

__version__ = "0.1.0"
