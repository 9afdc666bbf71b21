from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.request_utils import json_body, location_field, optional_date_arg
from ..common.sanitize import MISSING
from ..container import Container
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    trips = container.trip_manager
    gate = container.proximity_gate

    @app.route("/api/trips/proximity", methods=["POST"], endpoint="trip_proximity")
    async def trip_proximity():
        body = json_body()
        location = location_field(body, "location")
        if location is None:
            raise ValidationError("location is required")
        result = await gate.check_proximity(str(body.get("feeder_point_id") or ""), location)
        return jsonify({"success": True, "data": result.to_dict()})

    @app.route("/api/trips", methods=["POST"], endpoint="trip_start")
    async def trip_start():
        body = json_body()
        session = await trips.start_trip(
            body.get("driver_id"),
            body.get("vehicle_id"),
            body.get("feeder_point_id"),
            body.get("trip_number"),
            location_field(body, "location"),
            body.get("contractor_id"),
            driver_name=body.get("driver_name") or "",
            vehicle_number=body.get("vehicle_number") or "",
        )
        return jsonify({"success": True, "message": f"Trip {session.trip_number} started", "data": session.to_dict()}), 201

    @app.route("/api/trips/<trip_id>", methods=["GET"], endpoint="trip_detail")
    async def trip_detail(trip_id: str):
        session = await trips.get_trip(trip_id)
        return jsonify({"success": True, "data": session.to_dict()})

    @app.route("/api/trips/<trip_id>/end", methods=["POST"], endpoint="trip_end")
    async def trip_end(trip_id: str):
        body = json_body()
        photo_refs = body.get("photo_refs") or []
        if not isinstance(photo_refs, list):
            raise ValidationError("photo_refs must be a list")
        session = await trips.end_trip(
            trip_id,
            waste_weight_kg=body.get("waste_weight_kg"),
            end_location=location_field(body, "end_location"),
            photo_refs=photo_refs,
            notes=body.get("notes", MISSING),
            worker_ids=body.get("worker_ids"),
        )
        return jsonify({"success": True, "message": "Trip completed", "data": session.to_dict()})

    @app.route("/api/trips/<trip_id>/cancel", methods=["POST"], endpoint="trip_cancel")
    async def trip_cancel(trip_id: str):
        body = json_body()
        session = await trips.cancel_trip(trip_id, body.get("reason"))
        return jsonify({"success": True, "message": "Trip cancelled", "data": session.to_dict()})

    @app.route("/api/drivers/<driver_id>/trips/active", methods=["GET"], endpoint="trip_active")
    async def trip_active(driver_id: str):
        session = await trips.get_active_trip(driver_id)
        return jsonify({"success": True, "data": session.to_dict() if session else None})

    @app.route("/api/drivers/<driver_id>/trips/today", methods=["GET"], endpoint="trip_today")
    async def trip_today(driver_id: str):
        sessions = await trips.get_today_trips(driver_id, request.args.get("feeder_point_id"))
        return jsonify({"success": True, "data": [s.to_dict() for s in sessions]})

    @app.route("/api/drivers/<driver_id>/trips/next", methods=["GET"], endpoint="trip_next_number")
    async def trip_next_number(driver_id: str):
        feeder_point_id = request.args.get("feeder_point_id")
        if not feeder_point_id:
            raise ValidationError("feeder_point_id is required")
        number = await trips.get_next_trip_number(driver_id, feeder_point_id)
        return jsonify({"success": True, "data": {"next_trip_number": number}})

    @app.route("/api/drivers/<driver_id>/trips/statistics", methods=["GET"], endpoint="trip_statistics")
    async def trip_statistics(driver_id: str):
        stats = await trips.get_trip_statistics(driver_id, optional_date_arg("start"), optional_date_arg("end"))
        return jsonify({"success": True, "data": stats.to_dict()})
