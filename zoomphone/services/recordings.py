"""Call recording listing and download (user-level endpoints)."""

from __future__ import annotations

import logging
from dataclasses import replace
from urllib.parse import quote, unquote, urlparse

from zoomphone.auth.oauth import OAuthService
from zoomphone.http.client import ResilientHttpClient
from zoomphone.http.errors import ApiError, NotFound
from zoomphone.result import Err, Ok, Result
from zoomphone.services.base import AuthorizedService
from zoomphone.services.models import DownloadResult, Recording, RecordingPage
from zoomphone.storage.recordings import RecordingStorage

logger = logging.getLogger(__name__)

RECORDINGS_PATH = "/phone/users/me/recordings"
DOWNLOAD_PATH = "/phone/recording/download"


def extract_download_key(download_url: str) -> str:
    """Last path segment of a recording download URL, percent-decoded.

    Raises:
        ValueError: if the URL is not absolute or has no final segment.
    """
    parsed = urlparse(download_url)
    key = parsed.path.rsplit("/", 1)[-1] if parsed.path else ""
    if not parsed.scheme or not parsed.netloc or not key:
        logger.error("Failed to extract download key from %s", download_url)
        raise ValueError(f"Invalid download URL: {download_url}")
    return unquote(key)


class RecordingService(AuthorizedService):
    def __init__(
        self,
        http: ResilientHttpClient,
        oauth: OAuthService,
        storage: RecordingStorage,
    ) -> None:
        super().__init__(http, oauth)
        self._storage = storage

    async def list_recordings(self) -> Result[RecordingPage, ApiError]:
        logger.info("Fetching recordings (user-level endpoint)")

        failure = await self._authorize()
        if failure is not None:
            return failure

        result = await self._http.get(RECORDINGS_PATH)
        if not result.success:
            return result

        data = result.value if isinstance(result.value, dict) else {}
        raw = (
            data.get("recordings")
            or data.get("recording_list")
            or data.get("call_recordings")
            or []
        )
        page = RecordingPage(
            recordings=tuple(Recording.from_api(item) for item in raw if isinstance(item, dict)),
            next_page_token=data.get("next_page_token") or None,
        )
        logger.info(
            "Recordings fetched: %d (more=%s)",
            len(page.recordings),
            page.next_page_token is not None,
        )
        return Ok(page)

    extract_download_key = staticmethod(extract_download_key)

    async def download_recording(
        self, download_url: str, file_name: str
    ) -> Result[DownloadResult, ApiError]:
        """Download a recording and save it through RecordingStorage.

        Raises:
            ValueError: malformed ``download_url`` or unusable ``file_name``.
            OSError: the file could not be written.
        """
        logger.info("Downloading recording %s -> %s", download_url, file_name)
        key = extract_download_key(download_url)
        self._storage.path_for(file_name)

        failure = await self._authorize()
        if failure is not None:
            return failure

        result = await self._http.download(f"{DOWNLOAD_PATH}/{quote(key, safe='')}")
        if not result.success:
            if isinstance(result.error, NotFound):
                return Err(
                    replace(
                        result.error,
                        message=f"Recording not found: {result.error.message}",
                        resource_type="Recording",
                        resource_id=download_url,
                    )
                )
            return result

        content = result.value
        path = self._storage.save(file_name, content.content)
        download = DownloadResult(
            file_path=path,
            file_size=len(content.content),
            mime_type=content.content_type,
        )
        logger.info(
            "Recording downloaded: %s (%d bytes, %s)",
            path,
            download.file_size,
            download.mime_type,
        )
        return Ok(download)
