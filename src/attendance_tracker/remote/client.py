"""HTTP client for the spreadsheet-backed remote store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import requests

from attendance_tracker.models import AttendanceRecord
from attendance_tracker.remote.exceptions import (
	RemoteConnectionError,
	RemoteDataError,
	RemoteNotConfiguredError,
	RemoteResponseError,
)
from attendance_tracker.utils.dates import soft_canonical_date
from attendance_tracker.utils.serialization import coerce_int, coerce_str_id, decode_json_fields

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
POST_HEADERS = {"Content-Type": "text/plain;charset=utf-8"}

REMOTE_COLLECTIONS: tuple[str, ...] = ("classes", "students", "attendance", "bimesters", "holidays")

_DATE_FIELDS: dict[str, tuple[str, ...]] = {
	"attendance": ("date",),
	"bimesters": ("start", "end"),
	"holidays": ("date",),
}


def normalize_remote_item(collection: str, item: Mapping[str, Any]) -> dict[str, Any]:
	"""Decode embedded JSON and truncate timestamp dates in one remote row."""
	row = decode_json_fields(dict(item))
	for field_name in _DATE_FIELDS.get(collection, ()):
		value = row.get(field_name)
		if value:
			row[field_name] = soft_canonical_date(value)
	return row


def record_payload(record: AttendanceRecord | Mapping[str, Any]) -> dict[str, Any]:
	if isinstance(record, AttendanceRecord):
		return record.to_dict()
	return normalize_remote_item("attendance", record)


def _record_key(payload: Mapping[str, Any]) -> tuple[str, str, int]:
	return (
		coerce_str_id(payload.get("studentId")),
		soft_canonical_date(payload.get("date") or ""),
		coerce_int(payload.get("lessonIndex")),
	)


def dedupe_records(records: Iterable[AttendanceRecord | Mapping[str, Any]]) -> list[dict[str, Any]]:
	"""Collapse records sharing a (student, date, lesson) key, keeping the last one."""
	latest: dict[tuple[str, str, int], dict[str, Any]] = {}
	for record in records:
		payload = record_payload(record)
		latest[_record_key(payload)] = payload
	return list(latest.values())


@dataclass
class RemoteSnapshot:
	"""Every collection held by the remote store, normalized for local use."""

	classes: list[dict] = field(default_factory=list)
	students: list[dict] = field(default_factory=list)
	attendance: list[dict] = field(default_factory=list)
	bimesters: list[dict] = field(default_factory=list)
	holidays: list[dict] = field(default_factory=list)

	@property
	def has_classes(self) -> bool:
		return bool(self.classes)

	def as_dict(self) -> dict[str, list[dict]]:
		return {name: list(getattr(self, name)) for name in REMOTE_COLLECTIONS}

	@classmethod
	def from_payload(cls, payload: Mapping[str, Any]) -> "RemoteSnapshot":
		collections = {}
		for name in REMOTE_COLLECTIONS:
			items = payload.get(name) or []
			if not isinstance(items, list):
				raise RemoteDataError(f"Remote collection {name!r} is not a list")
			collections[name] = [
				normalize_remote_item(name, item) for item in items if isinstance(item, Mapping)
			]
		return cls(**collections)


class RemoteClient:
	"""Client for the remote store's read and fire-and-forget write actions.

	Write methods return ``None``: the remote endpoint is treated as opaque,
	so a completed POST is only proof that the request left this process.
	Only transport failures are reported, as :class:`RemoteConnectionError`.
	"""

	def __init__(
		self,
		base_url: Optional[str],
		*,
		timeout: float = DEFAULT_TIMEOUT,
		session: Optional[requests.Session] = None,
		user_agent: Optional[str] = None,
	) -> None:
		"""Initialise the client.

		Args:
			base_url: Deployed web app URL. ``None`` leaves the client unusable
				until configured, every call raising RemoteNotConfiguredError.
			timeout: Seconds before a request is abandoned.
			session: Optional requests session, mainly for tests.
			user_agent: Optional User-Agent header.
		"""
		self._base_url = (base_url or "").strip() or None
		self._timeout = timeout
		self._session = session or requests.Session()
		if user_agent:
			self._session.headers.update({"User-Agent": user_agent})

	@property
	def is_configured(self) -> bool:
		return self._base_url is not None

	def close(self) -> None:
		self._session.close()

	def __enter__(self) -> "RemoteClient":
		return self

	def __exit__(self, exc_type, exc_val, exc_tb) -> None:
		self.close()

	# ------------------------------------------------------------------
	# Reads
	# ------------------------------------------------------------------
	def fetch_all(self) -> RemoteSnapshot:
		"""Fetch every collection with one ``getData`` request.

		Raises:
			RemoteConnectionError: the store could not be reached.
			RemoteResponseError: the store answered with a non-2xx status.
			RemoteDataError: the body is not the expected JSON object.
		"""
		url = self._require_url()
		try:
			response = self._session.get(url, params={"action": "getData"}, timeout=self._timeout)
		except requests.RequestException as exc:
			raise RemoteConnectionError(f"Failed to fetch remote data: {exc}") from exc

		if not response.ok:
			raise RemoteResponseError(response.status_code)

		try:
			payload = response.json()
		except ValueError as exc:
			raise RemoteDataError("Remote store returned a non-JSON body") from exc

		if not isinstance(payload, dict):
			raise RemoteDataError("Remote store returned an unexpected payload")

		snapshot = RemoteSnapshot.from_payload(payload)
		_LOGGER.debug(
			"Fetched remote snapshot: %d classes, %d students, %d attendance records",
			len(snapshot.classes),
			len(snapshot.students),
			len(snapshot.attendance),
		)
		return snapshot

	def ping(self) -> bool:
		"""Return True when the store answers at all, whatever the status."""
		if not self.is_configured:
			return False
		try:
			self._session.get(self._base_url, params={"action": "ping"}, timeout=self._timeout)
		except requests.RequestException:
			return False
		return True

	# ------------------------------------------------------------------
	# Writes
	# ------------------------------------------------------------------
	def save_all(self, snapshot: RemoteSnapshot | Mapping[str, Any]) -> None:
		"""Overwrite each provided collection on the remote side."""
		data = snapshot.as_dict() if isinstance(snapshot, RemoteSnapshot) else snapshot
		body: dict[str, Any] = {"action": "saveAll"}
		for name in REMOTE_COLLECTIONS:
			if data.get(name) is not None:
				body[name] = list(data[name])
		self._post(body)

	def save_one(self, record: AttendanceRecord | Mapping[str, Any]) -> None:
		self._post({"action": "saveAttendance", "record": record_payload(record)})

	def save_batch(self, records: Iterable[AttendanceRecord | Mapping[str, Any]]) -> None:
		payloads = dedupe_records(records)
		if not payloads:
			return
		self._post({"action": "saveBatchAttendance", "records": payloads})

	# ------------------------------------------------------------------
	# Internal helpers
	# ------------------------------------------------------------------
	def _require_url(self) -> str:
		if self._base_url is None:
			raise RemoteNotConfiguredError("Remote store URL is not configured")
		return self._base_url

	def _post(self, body: dict[str, Any]) -> None:
		url = self._require_url()
		try:
			self._session.post(
				url,
				data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
				headers=POST_HEADERS,
				timeout=self._timeout,
			)
		except requests.RequestException as exc:
			raise RemoteConnectionError(f"Failed to send {body['action']}: {exc}") from exc
		_LOGGER.debug("Sent %s to remote store", body["action"])
