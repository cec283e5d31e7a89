"""
SSE event stream endpoint.

``GET /api/events`` streams recipe execution events (started, each
step outcome, done) as Server-Sent Events::

    event: step:applied
    id: 47
    data: {"v":1,"ts":1739648400.123,"seq":47,"type":"step:applied","key":"enable-foo","data":{...}}

Browsers resend ``Last-Event-Id`` on reconnect, which resumes the
stream from the bus's replay buffer.
"""

from __future__ import annotations

import json

from flask import Blueprint, Response, request

from recipeplane.ui.web.server import get_service

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def event_stream():  # type: ignore[no-untyped-def]
    """Stream bus events.

    Query params:
        since (int): Resume after this sequence number. A numeric
            ``Last-Event-Id`` header takes precedence when larger.
    """
    since = request.args.get("since", 0, type=int)

    last_event_id = request.headers.get("Last-Event-Id")
    if last_event_id is not None:
        try:
            since = max(since, int(last_event_id))
        except ValueError:
            pass

    bus = get_service().bus

    def generate():  # type: ignore[no-untyped-def]
        for event in bus.subscribe(since=since):
            yield (
                f"event: {event['type']}\n"
                f"id: {event['seq']}\n"
                f"data: {json.dumps(event, default=str)}\n\n"
            )

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "X-Accel-Buffering": "no",
        },
    )
