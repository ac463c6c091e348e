from flask import Blueprint, current_app, jsonify, request

from timeclock.exceptions import RemoteStoreError
from timeclock.models import Rejection
from timeclock.shared.logger import app_logger

bp = Blueprint("attendance", __name__, url_prefix="/")


def get_services():
    return current_app.extensions["timeclock"]


def _record_response(result):
    """Accepted transitions carry pending_sync; rejections map to 409"""
    if isinstance(result, Rejection):
        return jsonify(result.to_dict()), 409
    return jsonify(
        {"success": True, "data": result.to_dict(), "pending_sync": result.pending_sync}
    )


def _run_transition(operation_name: str, worker_id: str):
    try:
        service = get_services()["attendance_service"]
        result = getattr(service, operation_name)(worker_id)
        return _record_response(result)
    except RemoteStoreError as e:
        app_logger.error(f"Remote Store refused {operation_name} for worker {worker_id}: {e}")
        return jsonify({"success": False, "error": "remote_store_refused", "message": str(e)}), 502
    except Exception as e:
        app_logger.error(f"Error in {operation_name} for worker {worker_id}: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/<worker_id>/check-in", methods=["POST"])
def check_in(worker_id):
    return _run_transition("check_in", worker_id)


@bp.route("/attendance/<worker_id>/check-out", methods=["POST"])
def check_out(worker_id):
    return _run_transition("check_out", worker_id)


@bp.route("/attendance/<worker_id>/break-start", methods=["POST"])
def break_start(worker_id):
    return _run_transition("break_start", worker_id)


@bp.route("/attendance/<worker_id>/break-end", methods=["POST"])
def break_end(worker_id):
    return _run_transition("break_end", worker_id)


@bp.route("/attendance/<worker_id>/force-check-out", methods=["POST"])
def force_check_out(worker_id):
    """Operator override for a session the worker could not close"""
    return _run_transition("force_check_out", worker_id)


@bp.route("/attendance/<worker_id>/reset-day", methods=["POST"])
def reset_day(worker_id):
    """Operator override that starts today over"""
    return _run_transition("reset_day", worker_id)


@bp.route("/attendance/<worker_id>/status", methods=["GET"])
def get_status(worker_id):
    try:
        record = get_services()["attendance_service"].get_status(worker_id)
        return _record_response(record)
    except Exception as e:
        app_logger.error(f"Error getting status for worker {worker_id}: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/activity", methods=["GET"])
def get_activity():
    """Recent activity feed, newest first"""
    try:
        limit = int(request.args.get("limit", 20))
    except ValueError:
        return jsonify({"success": False, "error": "limit must be an integer"}), 400

    limit = max(min(limit, 1000), 1)
    worker_id = request.args.get("worker_id")
    events = get_services()["emitter"].recent(limit=limit, worker_id=worker_id)
    return jsonify({"success": True, "data": [event.to_dict() for event in events]})


@bp.route("/attendance/conflicts", methods=["GET"])
def get_conflicts():
    try:
        include_acknowledged = request.args.get("include_acknowledged", "false").lower() == "true"
        conflicts = get_services()["conflicts"].list(include_acknowledged=include_acknowledged)
        return jsonify(
            {
                "success": True,
                "data": [conflict.to_dict() for conflict in conflicts],
                "count": len(conflicts),
            }
        )
    except Exception as e:
        app_logger.error(f"Error listing reconciliation conflicts: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/conflicts/<int:conflict_id>/acknowledge", methods=["POST"])
def acknowledge_conflict(conflict_id):
    try:
        if not get_services()["conflicts"].acknowledge(conflict_id):
            return jsonify(
                {"success": False, "error": f"Conflict {conflict_id} not found"}
            ), 404
        return jsonify({"success": True, "message": f"Conflict {conflict_id} acknowledged"})
    except Exception as e:
        app_logger.error(f"Error acknowledging conflict {conflict_id}: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/reconcile", methods=["POST"])
def reconcile():
    """Run reconciliation now instead of waiting for the scheduler"""
    try:
        result = get_services()["reconciler"].reconcile_pending()
        return jsonify({"success": result["success"], "result": result})
    except Exception as e:
        app_logger.error(f"Error running reconciliation: {e}")
        return jsonify({"success": False, "error": str(e)}), 500


@bp.route("/attendance/sync-status", methods=["GET"])
def get_sync_status():
    """Pending journal counts plus scheduler state"""
    try:
        services = get_services()
        scheduler = services.get("scheduler")
        return jsonify(
            {
                "success": True,
                "pending": services["cache"].summary(),
                "scheduler": scheduler.get_all_jobs() if scheduler else {"running": False, "jobs": []},
            }
        )
    except Exception as e:
        app_logger.error(f"Error getting sync status: {e}")
        return jsonify({"success": False, "error": str(e)}), 500
