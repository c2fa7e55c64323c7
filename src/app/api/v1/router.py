"""V1 API router -- aggregates all CRM endpoint routers under /api."""

from __future__ import annotations

from fastapi import APIRouter

from src.app.api.v1 import (
    auth,
    bot,
    clients,
    dashboard,
    fund_tracker,
    leads,
    master_data,
    master_data_permission,
    outreach,
    partners,
    projects,
    team_members,
    users,
)

router = APIRouter(prefix="/api")

router.include_router(auth.router)
router.include_router(users.router)
router.include_router(leads.router)
router.include_router(clients.router)
router.include_router(projects.router)
router.include_router(partners.router)
router.include_router(team_members.router)
router.include_router(fund_tracker.router)
router.include_router(master_data.router)
router.include_router(master_data_permission.router)
router.include_router(outreach.router)
router.include_router(dashboard.router)
router.include_router(bot.router)
