"""
System endpoints - health and task introspection
"""

from fastapi import APIRouter
from typing import Dict, Any
from graceful_listener.lifecycle.task_registry import TaskRegistry
from graceful_listener.utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.API)

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/tasks/summary")
async def get_task_summary() -> Dict[str, Any]:
    """
    Get high-level task summary.

    Returns:
        - summary: Human-readable summary string
        - total: Tasks tracked since process start
        - active: Currently running tasks
        - failed: Tasks that ended with exceptions
        - cancelled: Tasks that were cancelled
    """
    registry = TaskRegistry.instance()
    return {
        "summary": registry.summary(),
        "total": len(registry.list_all()),
        "active": len(registry.active()),
        "failed": len(registry.failed()),
        "cancelled": len(registry.cancelled()),
    }


@router.get("/tasks/active")
async def get_active_tasks() -> Dict[str, Any]:
    """Currently running tracked tasks, oldest first."""
    tasks = [
        {
            "id": r.info.id,
            "category": r.info.category.name,
            "description": r.info.description,
            "created_at": r.info.created_at,
        }
        for r in TaskRegistry.instance().active()
    ]
    tasks.sort(key=lambda t: t["created_at"])
    return {"count": len(tasks), "tasks": tasks}
