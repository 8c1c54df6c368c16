# Overview: Flask API routes for system operations; health, backup download, restore and snapshot flush.

from flask import Blueprint, Response, jsonify, request

from ..errors import RestoreError
from ..services.store import get_store
from ..time_utils import utcnow
from . import error_response, internal_error

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


@system_bp.get("/health")
def health():
    store = get_store()
    last_error = store.snapshots.last_error
    return jsonify({
        "status": "ok",
        "snapshot": {
            "slot": store.snapshots.slot.key,
            "pending": store.snapshots.pending,
            "last_error": last_error.to_dict() if last_error else None,
        },
    }), 200


@system_bp.get("/backup")
def download_backup():
    blob = get_store().export_backup()
    filename = f"pos-backup-{utcnow().date().isoformat()}.sqlite"
    return Response(
        blob,
        mimetype="application/vnd.sqlite3",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@system_bp.post("/restore")
def restore_backup():
    """
    Replace the whole store with an uploaded backup.

    Accepts multipart (field "file") or a raw request body.
    """
    upload = request.files.get("file")
    blob = upload.read() if upload is not None else request.get_data()
    try:
        get_store().restore(blob)
        return jsonify({"restored": True, "bytes": len(blob)}), 200
    except RestoreError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to restore backup")


@system_bp.post("/persist")
def persist_snapshot():
    """Force a snapshot write (e.g. after an earlier failure)."""
    error = get_store().persist_snapshot()
    if error is not None:
        return error_response(error)
    return jsonify({"persisted": True}), 200
