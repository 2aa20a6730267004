from __future__ import annotations


class PersistenceError(Exception):
    """
    Raised by repositories when the backing store rejects a read or write.

    The original driver exception is kept as `__cause__`; `str()` gives a
    message suitable for showing to a user.
    """


class ConfigError(Exception):
    """Raised at startup when the environment holds an invalid setting."""
