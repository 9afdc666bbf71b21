from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import from_iso
from ..common.request_utils import date_range_args, json_body, location_field
from ..common.sanitize import MISSING
from ..container import Container
from ..core.exceptions import ValidationError
from .model import AttendanceEntry


def _check_in_time(value):
    if value in (None, ""):
        return None
    try:
        return from_iso(value)
    except (TypeError, ValueError):
        raise ValidationError("check_in_time must be an ISO datetime")


def _entry(raw) -> AttendanceEntry:
    if not isinstance(raw, dict):
        raise ValidationError("Each entry must be an object")
    return AttendanceEntry(
        worker_id=str(raw.get("worker_id") or ""),
        worker_name=raw.get("worker_name") or "",
        is_present=bool(raw.get("is_present")),
        check_in_time=_check_in_time(raw.get("check_in_time")),
        photo_ref=raw.get("photo_ref", MISSING),
        location=location_field(raw, "location") or MISSING,
        notes=raw.get("notes", MISSING),
    )


def register(app: Flask, container: Container) -> None:
    recorder = container.attendance_recorder

    @app.route("/api/trips/<trip_id>/attendance", methods=["POST"], endpoint="attendance_record")
    async def attendance_record(trip_id: str):
        body = json_body()
        record = await recorder.record_attendance(
            trip_id,
            body.get("worker_id"),
            body.get("worker_name") or "",
            body.get("feeder_point_id") or "",
            body.get("feeder_point_name") or "",
            body.get("driver_id") or "",
            body.get("driver_name") or "",
            body.get("status"),
            location=location_field(body, "location") or MISSING,
            photo_ref=body.get("photo_ref", MISSING),
            notes=body.get("notes", MISSING),
        )
        return jsonify({"success": True, "message": "Attendance recorded", "data": record.to_dict()}), 201

    @app.route("/api/trips/<trip_id>/attendance", methods=["GET"], endpoint="attendance_for_trip")
    async def attendance_for_trip(trip_id: str):
        records = await recorder.get_trip_attendance(trip_id)
        return jsonify({"success": True, "data": [r.to_dict() for r in records]})

    @app.route("/api/attendance/mark", methods=["POST"], endpoint="attendance_mark")
    async def attendance_mark():
        body = json_body()
        entry = _entry(body)
        record = await recorder.mark_attendance(
            entry.worker_id,
            entry.worker_name,
            body.get("driver_id"),
            is_present=entry.is_present,
            check_in_time=entry.check_in_time,
            vehicle_id=body.get("vehicle_id", MISSING),
            photo_ref=entry.photo_ref,
            location=entry.location,
            notes=entry.notes,
            driver_name=body.get("driver_name") or "",
        )
        return jsonify({"success": True, "message": "Attendance marked", "data": record.to_dict()})

    @app.route("/api/attendance/bulk-mark", methods=["POST"], endpoint="attendance_bulk_mark")
    async def attendance_bulk_mark():
        body = json_body()
        entries = body.get("entries")
        if not isinstance(entries, list):
            raise ValidationError("entries must be a list")
        ids = await recorder.bulk_mark_attendance(
            body.get("driver_id"),
            [_entry(e) for e in entries],
            vehicle_id=body.get("vehicle_id", MISSING),
            driver_name=body.get("driver_name") or "",
        )
        return jsonify({"success": True, "message": f"Attendance marked for {len(ids)} worker(s)", "data": ids})

    @app.route("/api/attendance/bulk-status", methods=["POST"], endpoint="attendance_bulk_status")
    async def attendance_bulk_status():
        body = json_body()
        record_ids = body.get("record_ids")
        if not isinstance(record_ids, list):
            raise ValidationError("record_ids must be a list")
        count = await recorder.bulk_set_status(record_ids, body.get("status"))
        return jsonify({"success": True, "message": f"{count} record(s) updated"})

    @app.route("/api/attendance/<record_id>", methods=["PATCH"], endpoint="attendance_correct")
    async def attendance_correct(record_id: str):
        body = json_body()
        # Keys absent from the body are left untouched; "notes": "" clears the notes.
        record = await recorder.update_record(
            record_id,
            current_role=request.headers.get("X-User-Role", ""),
            status=body["status"] if "status" in body else MISSING,
            notes=body["notes"] if "notes" in body else MISSING,
            timestamp=body["timestamp"] if "timestamp" in body else MISSING,
        )
        return jsonify({"success": True, "message": "Attendance record updated", "data": record.to_dict()})

    @app.route("/api/attendance", methods=["GET"], endpoint="attendance_list")
    async def attendance_list():
        start, end = date_range_args()
        records = await recorder.list_records(
            start,
            end,
            worker_id=request.args.get("worker_id"),
            driver_id=request.args.get("driver_id"),
            feeder_point_id=request.args.get("feeder_point_id"),
            status=request.args.get("status"),
        )
        return jsonify({"success": True, "data": [r.to_dict() for r in records]})

    @app.route("/api/drivers/<driver_id>/roster", methods=["GET"], endpoint="attendance_roster")
    async def attendance_roster(driver_id: str):
        roster = await recorder.get_driver_roster(driver_id)
        return jsonify({"success": True, "data": roster.to_dict()})
