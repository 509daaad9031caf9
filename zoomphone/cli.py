"""Command-line interface for the Zoom Phone integration.

Usage:
    zoomphone auth
    zoomphone history --from 2024-01-01 --to 2024-01-31 --all
    zoomphone call <call_log_id>
    zoomphone recordings
    zoomphone download "https://zoom.us/v2/phone/recording/download/..." -o call.mp3
    zoomphone webhook --port 3001
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import secrets
import sys
from datetime import date, datetime, timedelta, timezone
from urllib.parse import urlparse

from zoomphone.auth.callback import CALLBACK_PORT, wait_for_callback
from zoomphone.auth.oauth import OAuthService
from zoomphone.auth.token_store import FileTokenStore
from zoomphone.config import ConfigError, Settings, load_settings
from zoomphone.http.client import ResilientHttpClient
from zoomphone.http.errors import ApiRequestError
from zoomphone.logging_config import configure_logging
from zoomphone.services.call_history import CallHistoryService
from zoomphone.services.models import CallHistoryParams, CallLog
from zoomphone.services.recordings import RecordingService
from zoomphone.storage.recordings import RecordingStorage
from zoomphone.webhooks.dispatcher import EventDispatchQueue, WebhookEvent
from zoomphone.webhooks.handlers import WebhookServer

logger = logging.getLogger(__name__)

RULE = "-" * 100


def _fail(message: str) -> None:
    print(f"ERROR: {message}", file=sys.stderr)
    sys.exit(1)


def _oauth(settings: Settings) -> OAuthService:
    return OAuthService.from_settings(settings, FileTokenStore(settings.token_file))


def _require_auth(settings: Settings) -> OAuthService:
    missing = settings.missing_credentials()
    if missing:
        _fail(f"Missing environment variables: {', '.join(missing)}")
    oauth = _oauth(settings)
    if not oauth.is_authenticated():
        _fail('Not authenticated. Run "zoomphone auth" first.')
    return oauth


def _print_call_log(log: CallLog) -> None:
    print(f"ID: {log.id}")
    print(f"  Direction: {log.direction}")
    print(f"  From: {log.caller_number} -> To: {log.callee_number}")
    print(f"  Duration: {log.duration}s")
    print(f"  Time: {log.start_time} - {log.end_time}")
    print(f"  Result: {log.result}")
    print(f"  Has Recording: {log.has_recording}")
    print(RULE)


# -- Commands ----------------------------------------------------------------


def cmd_status(args: argparse.Namespace) -> None:
    """Show configuration and credential state."""
    settings: Settings = args.settings
    missing = settings.missing_credentials()
    print(f"API base URL:   {settings.api_base_url}")
    print(f"Redirect URI:   {settings.redirect_uri}")
    print(f"Credentials:    {'missing ' + ', '.join(missing) if missing else 'configured'}")
    print(f"Webhook secret: {'configured' if settings.webhook_secret else 'missing'}")

    record = _oauth(settings).credential
    if record is None:
        print("Token:          none (run 'zoomphone auth')")
        return
    remaining = record.remaining(datetime.now(timezone.utc))
    state = "expired" if remaining.total_seconds() <= 0 else f"{int(remaining.total_seconds())}s left"
    print(f"Token:          expires {record.expires_at.isoformat()} ({state})")


async def _auth(settings: Settings) -> None:
    oauth = _oauth(settings)
    try:
        if oauth.is_authenticated():
            print("Already authenticated!")
            print("To re-authenticate, run 'zoomphone logout' first.")
            return

        redirect = urlparse(settings.redirect_uri)
        host = redirect.hostname or "localhost"
        if host == "localhost":
            host = "127.0.0.1"
        state = secrets.token_urlsafe(16)

        print("Please visit the following URL to authorize:\n")
        print(oauth.get_authorization_url(state) + "\n")
        print(f"Waiting for authorization callback on {settings.redirect_uri} ...")
        print("(Press Ctrl+C to cancel)\n")

        result = await wait_for_callback(oauth, state, host=host, port=redirect.port or CALLBACK_PORT)
        if not result.success:
            print("You can also copy the 'code' from the redirect URL and run:")
            print("  zoomphone auth-callback <code>")
            _fail(f"Authentication failed: {result.error}")
        print("Authentication successful! Token saved.")
    finally:
        await oauth.aclose()


def cmd_auth(args: argparse.Namespace) -> None:
    """Run the interactive OAuth flow."""
    missing = args.settings.missing_credentials()
    if missing:
        _fail(f"Missing environment variables: {', '.join(missing)}")
    asyncio.run(_auth(args.settings))


async def _auth_callback(settings: Settings, code: str) -> None:
    oauth = _oauth(settings)
    try:
        result = await oauth.exchange_code(code)
    finally:
        await oauth.aclose()
    if not result.success:
        _fail(f"Authentication failed: {result.error.message}")
    print("Authentication successful!")
    print(f"Token expires at: {result.value.expires_at.isoformat()}")


def cmd_auth_callback(args: argparse.Namespace) -> None:
    """Exchange a manually copied authorization code."""
    missing = args.settings.missing_credentials()
    if missing:
        _fail(f"Missing environment variables: {', '.join(missing)}")
    asyncio.run(_auth_callback(args.settings, args.code))


def cmd_logout(args: argparse.Namespace) -> None:
    _oauth(args.settings).logout()
    print("Logged out.")


async def _history(settings: Settings, params: CallHistoryParams, fetch_all: bool) -> None:
    oauth = _require_auth(settings)
    async with ResilientHttpClient(settings.api_base_url) as http:
        service = CallHistoryService(http, oauth)
        try:
            if fetch_all:
                count = 0
                try:
                    async for log in service.iter_call_history(params):
                        _print_call_log(log)
                        count += 1
                except ApiRequestError as exc:
                    _fail(f"Failed to fetch call history: {exc.error.message}")
                print(f"Fetched: {count} records")
                return

            result = await service.get_call_history(params)
            if not result.success:
                _fail(f"Failed to fetch call history: {result.error.message}")
            page = result.value
            print(f"Total records: {page.total_records}")
            print(f"Fetched: {len(page.call_logs)} records\n")
            if not page.call_logs:
                print("No call logs found.")
                return
            print(RULE)
            for log in page.call_logs:
                _print_call_log(log)
            if page.next_page_token:
                print("\nMore records available. Use --all to fetch every page.")
        finally:
            await oauth.aclose()


def cmd_history(args: argparse.Namespace) -> None:
    """List call logs (default: last 30 days)."""
    today = date.today()
    params = CallHistoryParams(
        from_date=args.from_date or (today - timedelta(days=30)).isoformat(),
        to_date=args.to_date or today.isoformat(),
        page_size=args.page_size,
    )
    asyncio.run(_history(args.settings, params, args.all))


async def _call(settings: Settings, call_log_id: str) -> None:
    oauth = _require_auth(settings)
    async with ResilientHttpClient(settings.api_base_url) as http:
        try:
            result = await CallHistoryService(http, oauth).get_call_log(call_log_id)
        finally:
            await oauth.aclose()
    if not result.success:
        _fail(f"Failed to fetch call log: {result.error.message}")
    detail = result.value
    _print_call_log(detail.call_log)
    for segment in detail.call_path:
        print(f"  Path: {segment.type} {segment.number} at {segment.time} ({segment.duration}s)")
    if detail.recording is not None:
        print(f"  Recording: {detail.recording.download_url}")


def cmd_call(args: argparse.Namespace) -> None:
    """Show one call log with its call path."""
    asyncio.run(_call(args.settings, args.call_log_id))


async def _recordings(settings: Settings) -> None:
    oauth = _require_auth(settings)
    storage = RecordingStorage(settings.recordings_dir)
    async with ResilientHttpClient(settings.api_base_url) as http:
        try:
            result = await RecordingService(http, oauth, storage).list_recordings()
        finally:
            await oauth.aclose()
    if not result.success:
        _fail(f"Failed to fetch recordings: {result.error.message}")

    recordings = result.value.recordings
    print(f"Fetched: {len(recordings)} recordings\n")
    if not recordings:
        print("No recordings found.")
        return
    print(RULE)
    for rec in recordings:
        print(f"ID: {rec.id}")
        print(f"  Call Log ID: {rec.call_log_id}")
        print(f"  From: {rec.caller_number} -> To: {rec.callee_number}")
        print(f"  Duration: {rec.duration}s")
        print(f"  Time: {rec.start_time} - {rec.end_time}")
        if rec.file_type:
            print(f"  File Type: {rec.file_type}")
        if rec.file_size is not None:
            print(f"  File Size: {rec.file_size / 1024:.2f} KB")
        print(f"  Download URL: {rec.download_url}")
        print(RULE)


def cmd_recordings(args: argparse.Namespace) -> None:
    """List recordings of the authenticated user."""
    asyncio.run(_recordings(args.settings))


async def _download(settings: Settings, download_url: str, file_name: str) -> None:
    oauth = _require_auth(settings)
    storage = RecordingStorage(settings.recordings_dir)
    async with ResilientHttpClient(settings.api_base_url) as http:
        service = RecordingService(http, oauth, storage)
        try:
            result = await service.download_recording(download_url, file_name)
        except (ValueError, OSError) as exc:
            _fail(str(exc))
        finally:
            await oauth.aclose()
    if not result.success:
        _fail(f"Failed to download recording: {result.error.message}")
    download = result.value
    print("Download successful!")
    print(f"  File: {download.file_path}")
    print(f"  Size: {download.file_size / 1024:.2f} KB")
    print(f"  Type: {download.mime_type}")


def cmd_download(args: argparse.Namespace) -> None:
    """Download one recording into RECORDINGS_OUTPUT_DIR."""
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    file_name = args.output or f"recording_{stamp}.mp3"
    asyncio.run(_download(args.settings, args.url, file_name))


def _print_completed(event: WebhookEvent) -> None:
    obj = event.object
    print("\n[Webhook] Call completed:")
    print(f"  Call ID: {obj.get('call_id')}")
    print(f"  Call Log ID: {obj.get('call_log_id')}")
    print(f"  Direction: {obj.get('direction')}")
    print(f"  From: {obj.get('caller_number')} -> To: {obj.get('callee_number')}")
    print(f"  Duration: {obj.get('duration')}s")
    print(f"  Result: {obj.get('result')}")


def _print_ringing(event: WebhookEvent) -> None:
    obj = event.object
    caller = obj.get("caller") or {}
    print(f"\n[Webhook] Incoming call {obj.get('call_id')} from {caller.get('phone_number')}")


def cmd_webhook(args: argparse.Namespace) -> None:
    """Run the webhook receiver until interrupted."""
    settings: Settings = args.settings
    queue = EventDispatchQueue()
    queue.on_call_completed(_print_completed)
    queue.on_ringing(_print_ringing)

    server = WebhookServer(settings, queue, port=args.port)
    print(f"Webhook server listening on port {server.port}")
    print(f"  Health:  http://localhost:{server.port}/health")
    print(f"  Webhook: http://localhost:{server.port}/webhook")
    print("Press Ctrl+C to stop.\n")
    try:
        asyncio.run(server.serve())
    except OSError as exc:
        _fail(f"Cannot start webhook server: {exc}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zoomphone",
        description="Zoom Phone call history, recordings and webhooks",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_status = sub.add_parser("status", help="Show configuration and token state")
    p_status.set_defaults(func=cmd_status)

    p_auth = sub.add_parser("auth", help="Start the OAuth authorization flow")
    p_auth.set_defaults(func=cmd_auth)

    p_cb = sub.add_parser("auth-callback", help="Exchange an authorization code manually")
    p_cb.add_argument("code", help="Value of the 'code' query parameter")
    p_cb.set_defaults(func=cmd_auth_callback)

    p_logout = sub.add_parser("logout", help="Delete the stored token")
    p_logout.set_defaults(func=cmd_logout)

    # history
    p_history = sub.add_parser("history", help="List call logs")
    p_history.add_argument("--from", dest="from_date", help="Start date YYYY-MM-DD")
    p_history.add_argument("--to", dest="to_date", help="End date YYYY-MM-DD")
    p_history.add_argument("--page-size", type=int, default=100, help="Page size (max 300)")
    p_history.add_argument("--all", action="store_true", help="Follow every page")
    p_history.set_defaults(func=cmd_history)

    p_call = sub.add_parser("call", help="Show one call log")
    p_call.add_argument("call_log_id")
    p_call.set_defaults(func=cmd_call)

    p_rec = sub.add_parser("recordings", help="List recordings")
    p_rec.set_defaults(func=cmd_recordings)

    p_dl = sub.add_parser("download", help="Download a recording")
    p_dl.add_argument("url", help="Recording download URL")
    p_dl.add_argument("-o", "--output", help="File name inside RECORDINGS_OUTPUT_DIR")
    p_dl.set_defaults(func=cmd_download)

    # webhook
    p_hook = sub.add_parser("webhook", help="Run the webhook receiver")
    p_hook.add_argument("--port", type=int, help="Listen port (default WEBHOOK_PORT)")
    p_hook.set_defaults(func=cmd_webhook)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        args.settings = load_settings()
    except ConfigError as exc:
        _fail(str(exc))

    configure_logging("DEBUG" if args.verbose else args.settings.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
