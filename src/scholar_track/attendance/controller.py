from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.decorators import current_user_id, roles_required
from ..common.validators import optional_text
from ..container import Container
from ..core.enums import Role
from .service import batch_to_dict, build_capture_event, build_capture_events, record_to_dict, session_to_dict


def register(app: Flask, container: Container) -> None:
    staff_only = roles_required(Role.TEACHER, Role.ADMIN)

    @app.route("/api/teachers/photo-attendance", methods=["POST"], endpoint="photo_attendance")
    @staff_only
    def photo_attendance():
        """Save a camera attendance batch. The session stays open for edits."""

        data = request.get_json(silent=True) or {}
        result = container.attendance_service.submit_batch(
            class_id=data.get("classId"),
            attendance_date=data.get("date"),
            events=build_capture_events(data.get("attendance")),
            marked_by=current_user_id(),
            topic_id=optional_text(data.get("topicId")),
        )
        return jsonify(batch_to_dict(result)), 200

    @app.route("/api/attendance", methods=["POST"], endpoint="mark_attendance")
    @staff_only
    def mark_attendance():
        data = request.get_json(silent=True) or {}
        event = build_capture_event(data)
        record = container.attendance_service.mark_student(
            class_id=data.get("classId"),
            attendance_date=data.get("date"),
            event=event,
            marked_by=current_user_id(),
            topic_id=optional_text(data.get("topicId")),
        )
        return jsonify(record_to_dict(record)), 201

    @app.route("/api/teachers/attendance", methods=["GET"], endpoint="session_attendance")
    @staff_only
    def session_attendance():
        state = container.attendance_service.get_session(
            class_id=request.args.get("classId"),
            session_date=request.args.get("date"),
        )
        return jsonify(session_to_dict(state)), 200

    @app.route("/api/teachers/attendance/finalize", methods=["POST"], endpoint="finalize_attendance")
    @staff_only
    def finalize_attendance():
        data = request.get_json(silent=True) or {}
        state = container.attendance_service.finalize_session(
            class_id=data.get("classId"),
            session_date=data.get("date"),
            finalized_by=current_user_id(),
        )
        return jsonify(session_to_dict(state)), 200
