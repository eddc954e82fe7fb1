"""Exceptions raised by the remote spreadsheet store client."""


class RemoteError(Exception):
	"""Base exception for remote store failures."""


# Name used by callers that only care that the network let them down.
NetworkError = RemoteError


class RemoteNotConfiguredError(RemoteError):
	"""No remote store URL has been configured."""


class RemoteConnectionError(RemoteError):
	"""The remote store could not be reached (offline, DNS, timeout)."""


class RemoteResponseError(RemoteError):
	"""The remote store answered a read with a non-success status."""

	def __init__(self, status_code: int, message: str = "") -> None:
		self.status_code = status_code
		super().__init__(message or f"Remote store answered with HTTP {status_code}")


class RemoteDataError(RemoteError):
	"""The remote store returned a body that could not be decoded."""
