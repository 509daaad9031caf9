"""Typed views of Zoom Phone API payloads.

The user-level endpoints are loose about field names, so the mappers accept
the known variants and fall back to empty values instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any


def _str(data: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return str(value)
    return ""


def _int(data: dict[str, Any], key: str) -> int:
    try:
        return int(data.get(key) or 0)
    except (TypeError, ValueError):
        return 0


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    if data.get(key) is None:
        return None
    return _int(data, key)


@dataclass(frozen=True)
class CallHistoryParams:
    """Query for the call log list. Dates are ``YYYY-MM-DD``."""

    from_date: str | None = None
    to_date: str | None = None
    page_size: int | None = None
    next_page_token: str | None = None

    def to_query(self) -> dict[str, str]:
        query: dict[str, str] = {}
        if self.from_date:
            query["from"] = self.from_date
        if self.to_date:
            query["to"] = self.to_date
        if self.page_size:
            query["page_size"] = str(self.page_size)
        if self.next_page_token:
            query["next_page_token"] = self.next_page_token
        return query

    def with_page(self, next_page_token: str | None) -> CallHistoryParams:
        return replace(self, next_page_token=next_page_token)


@dataclass(frozen=True)
class CallLog:
    id: str
    call_id: str
    caller_number: str
    callee_number: str
    direction: str
    duration: int
    start_time: str
    end_time: str
    result: str
    has_recording: bool

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CallLog:
        return cls(
            id=_str(data, "id"),
            call_id=_str(data, "call_id"),
            caller_number=_str(data, "caller_number"),
            callee_number=_str(data, "callee_number"),
            direction=_str(data, "direction"),
            duration=_int(data, "duration"),
            start_time=_str(data, "date_time", "start_time"),
            end_time=_str(data, "end_date_time", "end_time"),
            result=_str(data, "result"),
            has_recording=bool(data.get("has_recording", False)),
        )


@dataclass(frozen=True)
class CallPathSegment:
    id: str
    type: str
    number: str
    time: str
    duration: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CallPathSegment:
        return cls(
            id=_str(data, "id"),
            type=_str(data, "type"),
            number=_str(data, "number"),
            time=_str(data, "time"),
            duration=_int(data, "duration"),
        )


@dataclass(frozen=True)
class RecordingInfo:
    id: str
    download_url: str
    file_type: str
    file_size: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RecordingInfo:
        return cls(
            id=_str(data, "id"),
            download_url=_str(data, "download_url"),
            file_type=_str(data, "file_type"),
            file_size=_int(data, "file_size"),
        )


@dataclass(frozen=True)
class CallLogDetail:
    call_log: CallLog
    call_path: tuple[CallPathSegment, ...] = ()
    recording: RecordingInfo | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CallLogDetail:
        segments = data.get("call_path") or []
        recording = data.get("recording")
        return cls(
            call_log=CallLog.from_api(data),
            call_path=tuple(
                CallPathSegment.from_api(s) for s in segments if isinstance(s, dict)
            ),
            recording=RecordingInfo.from_api(recording) if isinstance(recording, dict) else None,
        )


@dataclass(frozen=True)
class CallHistoryPage:
    call_logs: tuple[CallLog, ...]
    next_page_token: str | None
    total_records: int


@dataclass(frozen=True)
class Recording:
    id: str
    call_log_id: str
    caller_number: str
    callee_number: str
    start_time: str
    end_time: str
    duration: int
    download_url: str
    file_type: str | None = None
    file_size: int | None = None
    recording_type: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Recording:
        return cls(
            id=_str(data, "id"),
            call_log_id=_str(data, "call_log_id"),
            caller_number=_str(data, "caller_number"),
            callee_number=_str(data, "callee_number"),
            start_time=_str(data, "date_time"),
            # User endpoint uses end_time, admin endpoint end_date_time
            end_time=_str(data, "end_time", "end_date_time"),
            duration=_int(data, "duration"),
            download_url=_str(data, "download_url"),
            file_type=data.get("file_type"),
            file_size=_optional_int(data, "file_size"),
            recording_type=data.get("recording_type"),
        )


@dataclass(frozen=True)
class RecordingPage:
    recordings: tuple[Recording, ...]
    next_page_token: str | None


@dataclass(frozen=True)
class DownloadResult:
    file_path: Path
    file_size: int
    mime_type: str
