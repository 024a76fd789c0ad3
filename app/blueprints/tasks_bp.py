"""
Tasks Blueprint — IT specialist Gantt tasks and their subtasks.

  GET    /api/v1/it-specialist/tasks                  — Own tasks with subtasks
  POST   /api/v1/it-specialist/tasks                  — Create (progress starts at 0)
  PATCH  /api/v1/it-specialist/tasks/<id>             — Partial update
  DELETE /api/v1/it-specialist/tasks/<id>
  POST   /api/v1/it-specialist/tasks/<id>/subtasks    — Append a subtask
  PATCH  /api/v1/it-specialist/subtasks/<id>          — Toggle / rename
  DELETE /api/v1/it-specialist/subtasks/<id>

Every subtask response carries the parent task's recomputed ``progress``.
"""

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_role
from app.models.auth import ROLE_IT_SPECIALIST
from app.services import task_service

tasks_bp = Blueprint("tasks_bp", __name__, url_prefix="/api/v1/it-specialist")


@tasks_bp.route("/tasks", methods=["GET"])
@require_role(ROLE_IT_SPECIALIST)
def list_tasks():
    identity = current_identity()
    return jsonify([t.to_dict() for t in task_service.list_tasks(identity.user_id)])


@tasks_bp.route("/tasks", methods=["POST"])
@require_role(ROLE_IT_SPECIALIST)
def create_task():
    """
    Body: { "title", "startDate", "endDate", "description"?, "status"?,
            "priority"?, "color"? }
    """
    identity = current_identity()
    task = task_service.create_task(identity.user_id, request.get_json(silent=True) or {})
    return jsonify(task.to_dict()), 201


@tasks_bp.route("/tasks/<int:task_id>", methods=["PATCH"])
@require_role(ROLE_IT_SPECIALIST)
def update_task(task_id):
    identity = current_identity()
    task = task_service.update_task(task_id, identity.user_id, request.get_json(silent=True) or {})
    return jsonify(task.to_dict())


@tasks_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
@require_role(ROLE_IT_SPECIALIST)
def delete_task(task_id):
    identity = current_identity()
    task_service.delete_task(task_id, identity.user_id)
    return jsonify({"success": True})


# ── Subtasks ─────────────────────────────────────────────────────────────────

@tasks_bp.route("/tasks/<int:task_id>/subtasks", methods=["POST"])
@require_role(ROLE_IT_SPECIALIST)
def create_subtask(task_id):
    """Body: { "title": "..." }"""
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    subtask = task_service.create_subtask(task_id, identity.user_id, data.get("title"))
    return jsonify({"subtask": subtask.to_dict(), "progress": subtask.task.progress}), 201


@tasks_bp.route("/subtasks/<int:subtask_id>", methods=["PATCH"])
@require_role(ROLE_IT_SPECIALIST)
def update_subtask(subtask_id):
    """Body: { "completed"?: bool, "title"?: "..." }"""
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    subtask = task_service.update_subtask(
        subtask_id, identity.user_id,
        completed=data.get("completed"), title=data.get("title"),
    )
    return jsonify({"subtask": subtask.to_dict(), "progress": subtask.task.progress})


@tasks_bp.route("/subtasks/<int:subtask_id>", methods=["DELETE"])
@require_role(ROLE_IT_SPECIALIST)
def delete_subtask(subtask_id):
    identity = current_identity()
    task = task_service.delete_subtask(subtask_id, identity.user_id)
    return jsonify({"success": True, "progress": task.progress})
