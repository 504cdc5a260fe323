"""Models of a small teaching kernel: paging, ELF headers, C strings, shell parsing, word counts, allocation, locks and system-call arguments."""

__version__ = "0.1.0"
__all__ = ["__version__"]