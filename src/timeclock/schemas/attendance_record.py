_instant = {"type": ["string", "null"]}

schema = {
    "type": "object",
    "properties": {
        "worker_id": {"type": "string", "minLength": 1},
        "date": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}$"},
        "status": {
            "type": "string",
            "enum": ["not_checked_in", "checked_in", "on_break", "checked_out"],
        },
        "check_in_time": _instant,
        "check_out_time": _instant,
        "break_start_time": _instant,
        "break_end_time": _instant,
        "total_hours": {"type": "number", "minimum": 0},
        "break_time_total": {"type": "number", "minimum": 0},
        "pending_sync": {"type": "boolean"},
        "version": {"type": "integer", "minimum": 0},
    },
    "required": ["worker_id", "date", "status", "version"],
}

# Response envelope returned by the remote attendance store
envelope_schema = {
    "type": "object",
    "properties": {
        "status": {"type": "integer"},
        "message": {"type": ["string", "null"]},
        "data": {"anyOf": [schema, {"type": "null"}]},
    },
    "required": ["status"],
}
