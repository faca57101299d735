# Overview: Server-Sent Events push channel announcing gateway table changes.

from flask import Blueprint, Response, current_app, request, stream_with_context

from ..decorators import require_api_key, require_auth
from ..services import table_service
from ..services.realtime_service import broadcaster


realtime_bp = Blueprint("realtime", __name__, url_prefix="/realtime/v1")


@realtime_bp.get("/changes")
@require_api_key
@require_auth
def changes_stream_route():
    """
    Stream `event: change` frames for the requested tables.

    ?tables=orders,customers limits the stream; no filter means every
    gateway table. Frames carry {"table", "type"} only.
    """
    raw = request.args.get("tables", "")
    tables = [t.strip() for t in raw.split(",") if t.strip()]
    unknown = [t for t in tables if t not in table_service.TABLES]
    if unknown:
        return {"error": f"Unknown table: {', '.join(unknown)}"}, 400

    sub = broadcaster.subscribe(tables)
    current_app.logger.info("Realtime subscriber attached (tables=%s)", ",".join(tables) or "*")
    keepalive = current_app.config.get("REALTIME_KEEPALIVE_SECONDS", 15)

    return Response(
        stream_with_context(broadcaster.stream(sub, keepalive_seconds=keepalive)),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
