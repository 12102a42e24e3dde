from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.decorators import roles_required, teacher_scope
from ..common.validators import optional_text, require_positive_int
from ..container import Container
from ..core.constants import DEFAULT_WEEKLY_DAYS
from ..core.enums import Role
from .service import attention_to_dict, daily_to_dict, summary_to_dict


def register(app: Flask, container: Container) -> None:
    staff_only = roles_required(Role.TEACHER, Role.ADMIN)

    @app.route("/api/teachers/students-with-attendance", methods=["GET"], endpoint="students_with_attendance")
    @staff_only
    def students_with_attendance():
        days = request.args.get("days")
        rows = container.report_service.students_with_attendance(
            teacher_id=teacher_scope(),
            class_id=optional_text(request.args.get("classId")),
            days=require_positive_int(days, "days", default=0) or None,
            search=request.args.get("search"),
        )
        return jsonify([summary_to_dict(r) for r in rows]), 200

    @app.route("/api/teachers/weekly-attendance", methods=["GET"], endpoint="weekly_attendance")
    @staff_only
    def weekly_attendance():
        rows = container.report_service.weekly_attendance(
            teacher_id=teacher_scope(),
            class_id=optional_text(request.args.get("classId")),
            days=require_positive_int(request.args.get("days"), "days", default=DEFAULT_WEEKLY_DAYS),
        )
        return jsonify([daily_to_dict(r) for r in rows]), 200

    @app.route("/api/teachers/students-requiring-attention", methods=["GET"], endpoint="students_requiring_attention")
    @staff_only
    def students_requiring_attention():
        rows = container.report_service.students_requiring_attention(
            teacher_id=teacher_scope(),
            class_id=optional_text(request.args.get("classId")),
            days=require_positive_int(request.args.get("days"), "days", default=DEFAULT_WEEKLY_DAYS),
        )
        return jsonify([attention_to_dict(r) for r in rows]), 200

    @app.route("/api/teachers/weekly-report", methods=["POST"], endpoint="weekly_report")
    @staff_only
    def weekly_report():
        data = request.get_json(silent=True) or {}
        start = data.get("startDate")
        end = data.get("endDate")
        csv_text = container.report_service.attendance_report_csv(
            start=start,
            end=end,
            teacher_id=teacher_scope(),
            class_id=optional_text(data.get("classId")),
        )
        filename = f"weekly-attendance-report-{start}-to-{end}.csv"
        return app.response_class(
            csv_text.encode("utf-8-sig"),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
