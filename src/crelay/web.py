"""
HTTP API for relay cards (FastAPI).

    GET|POST /gpio?pin=<n>&status=<0|1|2>[&serial=<sn>]  ->  Relay 1:0<br>Relay 2:1<br>...
    GET|POST /                                            ->  plain text overview

Both endpoints detect the card on every request.
"""

import logging
from typing import Optional
from urllib.parse import parse_qs

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from . import __version__
from .backends.base import RelayState
from .config import RelayConfig
from .errors import (
    DeviceUnavailable, NoActiveCard, ProtocolError, RelayCardNotFound, RelayError,
    RelayOutOfRange,
)
from .protocol import RelayRequest, execute, format_status, parse_request
from .session import RelaySession

log = logging.getLogger(__name__)

API_URL = "/gpio"
NO_CARD_MESSAGE = "ERROR: No compatible device detected"


def error_response(error: Exception) -> PlainTextResponse:
    """Map a relay error to an HTTP status and a plain text body."""
    if isinstance(error, RelayCardNotFound):
        return PlainTextResponse(NO_CARD_MESSAGE, status_code=503)
    if isinstance(error, (DeviceUnavailable, NoActiveCard)):
        status = 503
    elif isinstance(error, (RelayOutOfRange, ValueError)):
        status = 400
    elif isinstance(error, ProtocolError):
        status = 502
    else:
        status = 500
    return PlainTextResponse(f"ERROR: {error}", status_code=status)


async def _read_request(request: Request) -> RelayRequest:
    fields = dict(request.query_params)
    if request.method == "POST":
        body = (await request.body()).decode("utf-8", errors="replace")
        # form fields take precedence over the query string
        fields.update({k: v[0] for k, v in parse_qs(body.strip()).items()})
    return parse_request(fields)


def _overview(session: RelaySession, states: list[RelayState], labels: list[str]) -> str:
    card = session.card
    lines = [
        f"crelay {__version__}",
        f"Relay card: {card.name} (on {card.port})",
        "",
    ]
    for relay, state in enumerate(states, start=1):
        label = labels[relay - 1] if relay <= len(labels) else ""
        text = "on" if state == RelayState.ON else "off"
        lines.append(f"Relay {relay} ({label}): {text}" if label else f"Relay {relay}: {text}")
    return "\n".join(lines) + "\n"


def create_app(session: Optional[RelaySession] = None,
               config: Optional[RelayConfig] = None,
               labels: Optional[list[str]] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        session: Relay session shared with other front ends. Created if None.
        config: Configuration, used when session is None.
        labels: Relay labels for the overview page. Defaults to the config labels.
    """
    if session is None:
        session = RelaySession(config)
    if labels is None:
        labels = list(session.config.http.labels)

    app = FastAPI(
        title="crelay",
        description="Relay card control",
        version=__version__,
    )
    app.state.session = session

    @app.api_route(API_URL, methods=["GET", "POST"], response_class=PlainTextResponse)
    async def gpio(request: Request):
        """Switch a relay and report the state of all relays."""
        relay_request = await _read_request(request)
        log.debug("API request %s", relay_request)
        try:
            states = await run_in_threadpool(execute, session, relay_request)
        except (RelayError, ValueError) as e:
            log.warning("API request failed: %s", e)
            return error_response(e)
        return PlainTextResponse(format_status(states))

    @app.api_route("/", methods=["GET", "POST"], response_class=PlainTextResponse)
    async def index(request: Request):
        """Plain text overview of the card and its relays."""
        relay_request = await _read_request(request)
        try:
            states = await run_in_threadpool(execute, session, relay_request)
        except (RelayError, ValueError) as e:
            log.warning("Request failed: %s", e)
            return error_response(e)
        return PlainTextResponse(_overview(session, states, labels))

    return app


def serve(app: FastAPI, host: str, port: int) -> None:
    """Run the HTTP server until interrupted."""
    import uvicorn

    log.info("HTTP server listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


__all__ = ["create_app", "error_response", "serve"]
