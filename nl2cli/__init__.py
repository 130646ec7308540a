"""Natural-language to CLI command translation with retrieval-augmented generation"""

__version__ = "0.1.0"
