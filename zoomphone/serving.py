"""Helpers for running the ASGI apps under uvicorn."""

from __future__ import annotations

import logging
import socket

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket up front so a busy port fails fast with OSError."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        logger.error("Cannot bind %s:%d", host, port)
        raise
    return sock


def make_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    # log_config=None keeps uvicorn on the handlers configure_logging() installed
    config = uvicorn.Config(app, host=host, port=port, log_config=None, lifespan="off")
    return uvicorn.Server(config)
