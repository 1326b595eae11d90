"""TCP building blocks: an HTTP request parser, a blocking socket handler, a threaded acceptor and configuration loading."""

__version__ = "0.1.0"