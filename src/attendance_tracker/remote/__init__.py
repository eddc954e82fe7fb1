"""Remote spreadsheet store integration."""

from .client import RemoteClient, RemoteSnapshot, dedupe_records, normalize_remote_item
from .exceptions import (
	NetworkError,
	RemoteConnectionError,
	RemoteDataError,
	RemoteError,
	RemoteNotConfiguredError,
	RemoteResponseError,
)

__all__ = [
	"RemoteClient",
	"RemoteSnapshot",
	"dedupe_records",
	"normalize_remote_item",
	"NetworkError",
	"RemoteError",
	"RemoteConnectionError",
	"RemoteDataError",
	"RemoteNotConfiguredError",
	"RemoteResponseError",
]
