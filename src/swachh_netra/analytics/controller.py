from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.request_utils import date_range_args
from ..container import Container


def register(app: Flask, container: Container) -> None:
    aggregator = container.aggregator

    @app.route("/api/analytics", methods=["GET"], endpoint="analytics_report")
    async def analytics_report():
        start, end = date_range_args()
        report = await aggregator.build_report(
            start,
            end,
            driver_id=request.args.get("driver_id"),
            feeder_point_id=request.args.get("feeder_point_id"),
        )
        return jsonify({"success": True, "data": report.to_dict()})

    @app.route("/api/analytics/groups/<mode>", methods=["GET"], endpoint="analytics_groups")
    async def analytics_groups(mode: str):
        start, end = date_range_args()
        groups = await aggregator.grouped_report(start, end, mode, driver_id=request.args.get("driver_id"))
        return jsonify({"success": True, "data": [g.to_dict() for g in groups]})

    @app.route("/api/workers/<worker_id>/profile", methods=["GET"], endpoint="analytics_worker_profile")
    async def analytics_worker_profile(worker_id: str):
        start, end = date_range_args()
        profile = await aggregator.worker_profile(worker_id, start, end)
        return jsonify({"success": True, "data": profile.to_dict()})
