"""Text Language Server.

A language server keeping an in-memory mirror of the documents a client has
open, validating them on every change and serving completion, hover,
navigation and formatting requests for them.
"""

__version__ = "0.1.0"
