"""Application-level exception types.

Convention:
- ``RemoteStoreError``: anything that went wrong talking to the relational
  store. Reconcilers catch it, log it, and give up on the current tick; the
  next scheduled tick is the retry.
- ``UnsafePathError``: a composite key or relative path that would resolve
  outside the configured conf root. Raised before any disk access happens.
- ``OSError``: filesystem failures are left as the builtin type and handled
  per record by the adapter reconciler.
"""

from __future__ import annotations


class RemoteStoreError(Exception):
    """Raised when a query against the remote store fails."""


class RemoteConnectionError(RemoteStoreError):
    """Raised when a connection to the remote store cannot be established."""


class UnsafePathError(ValueError):
    """Raised when a path would escape the conf root."""
