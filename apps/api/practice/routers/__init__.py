"""API routers."""

from practice.routers.milestones import router as milestones_router
from practice.routers.offices import router as offices_router
from practice.routers.patients import router as patients_router
from practice.routers.staff import router as staff_router
from practice.routers.tasks import router as tasks_router

__all__ = [
    "milestones_router",
    "offices_router",
    "patients_router",
    "staff_router",
    "tasks_router",
]
