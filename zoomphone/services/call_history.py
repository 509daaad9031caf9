"""Call history queries against the user-level Zoom Phone endpoints.

/phone/users/me/call_logs is used instead of the account-wide
/phone/call_history, which would need :admin scopes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, AsyncIterator
from urllib.parse import quote

from zoomphone.auth.oauth import OAuthService
from zoomphone.http.client import ResilientHttpClient, SleepFn
from zoomphone.http.errors import ApiError, ApiRequestError, NotFound
from zoomphone.result import Err, Ok, Result
from zoomphone.services.base import AuthorizedService
from zoomphone.services.models import CallHistoryPage, CallHistoryParams, CallLog, CallLogDetail

logger = logging.getLogger(__name__)

CALL_LOGS_PATH = "/phone/users/me/call_logs"

# Pause between page requests to stay clear of rate limits
PAGINATION_DELAY_SECONDS = 0.5


class CallHistoryService(AuthorizedService):
    def __init__(
        self,
        http: ResilientHttpClient,
        oauth: OAuthService,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        super().__init__(http, oauth)
        self._sleep = sleep

    async def get_call_history(
        self, params: CallHistoryParams | None = None
    ) -> Result[CallHistoryPage, ApiError]:
        """Fetch one page of call logs."""
        params = params or CallHistoryParams()
        logger.info("Fetching call history (%s)", params.to_query() or "no filters")

        failure = await self._authorize()
        if failure is not None:
            return failure

        result = await self._http.get(CALL_LOGS_PATH, params=params.to_query())
        if not result.success:
            return result

        data: dict[str, Any] = result.value if isinstance(result.value, dict) else {}
        raw_logs = data.get("call_logs") or data.get("call_log") or []
        page = CallHistoryPage(
            call_logs=tuple(CallLog.from_api(item) for item in raw_logs if isinstance(item, dict)),
            next_page_token=data.get("next_page_token") or None,
            total_records=int(data.get("total_records") or 0),
        )
        logger.info(
            "Call history fetched: %d logs (total %d, more=%s)",
            len(page.call_logs),
            page.total_records,
            page.next_page_token is not None,
        )
        return Ok(page)

    async def get_call_log(self, call_log_id: str) -> Result[CallLogDetail, ApiError]:
        """Fetch one call log with its call path and recording info."""
        logger.info("Fetching call log detail: %s", call_log_id)

        failure = await self._authorize()
        if failure is not None:
            return failure

        result = await self._http.get(f"{CALL_LOGS_PATH}/{quote(call_log_id, safe='')}")
        if not result.success:
            if isinstance(result.error, NotFound):
                return Err(replace(result.error, resource_type="CallLog", resource_id=call_log_id))
            return result

        data = result.value if isinstance(result.value, dict) else {}
        detail = CallLogDetail.from_api(data)
        logger.info(
            "Call log detail fetched: %s (recording=%s)",
            call_log_id,
            detail.recording is not None,
        )
        return Ok(detail)

    async def iter_call_history(
        self, params: CallHistoryParams | None = None
    ) -> AsyncIterator[CallLog]:
        """Yield every call log across all pages.

        Raises:
            ApiRequestError: if any page fails; logs already yielded stand.
        """
        params = params or CallHistoryParams()
        next_token = params.next_page_token
        page_count = 0

        while True:
            result = await self.get_call_history(params.with_page(next_token))
            if not result.success:
                logger.error(
                    "Failed to fetch call history page %d: %s",
                    page_count + 1,
                    result.error.message,
                )
                raise ApiRequestError(result.error)

            page_count += 1
            for call_log in result.value.call_logs:
                yield call_log

            next_token = result.value.next_page_token
            if not next_token:
                break
            await self._sleep(PAGINATION_DELAY_SECONDS)

        logger.info("Completed paginated call history fetch (%d pages)", page_count)
