"""Repository permission routes.

Routes (relative to ``/api/permissions``):
    GET  /{owner}/{resource}             resolved level, role and derived flags
    POST /{owner}/{resource}/can-action  decision for ``{"action": ...}``
    POST /{owner}/{resource}/invalidate  drop the cached entry for the caller
"""
import json

from aiohttp import web
from navconfig.logging import logging

from ..auth.gate import AccessControlGate
from ..auth.permission import ACTIONS
from ..auth.resolver import permission_summary
from ..exceptions import InvalidRequest


class PermissionHandler:
    """Exposes permission resolution and cache invalidation over HTTP."""

    def __init__(self, gate: AccessControlGate, prefix: str = "/api/permissions"):
        self.gate = gate
        self.resolver = gate.resolver
        self.prefix = prefix.rstrip("/")
        self.logger = logging.getLogger("warden.handlers.permissions")

    def setup(self, app: web.Application) -> None:
        """Register the routes on ``app``."""
        base = f"{self.prefix}/{{owner}}/{{resource}}"
        app.router.add_get(base, self.get_permission)
        app.router.add_post(f"{base}/can-action", self.can_action)
        app.router.add_post(f"{base}/invalidate", self.invalidate)

    @staticmethod
    def _repository(request: web.Request) -> tuple[str, str]:
        owner = request.match_info.get("owner")
        resource = request.match_info.get("resource")
        if not owner or not resource:
            raise InvalidRequest("Owner and repo parameters are required")
        return owner, resource

    async def get_permission(self, request: web.Request) -> web.Response:
        session = await self.gate.authenticate(request)
        owner, resource = self._repository(request)
        force_refresh = request.query.get("refresh", "").lower() == "true"
        self.logger.debug(
            f"Checking permission for {session.subject_name} in {owner}/{resource}"
        )
        decision = await self.gate.authorize(
            session, owner, resource, "none", force_refresh=force_refresh
        )
        return web.json_response({
            "success": True,
            "owner": owner,
            "repo": resource,
            "user": session.subject_name,
            **permission_summary(decision.entry),
        })

    async def can_action(self, request: web.Request) -> web.Response:
        session = await self.gate.authenticate(request)
        owner, resource = self._repository(request)
        try:
            body = await request.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise InvalidRequest("Request body must be valid JSON") from exc
        action = body.get("action") if isinstance(body, dict) else None
        if not isinstance(action, str) or action not in ACTIONS:
            raise InvalidRequest(
                "Valid action is required (read, write, maintain, or admin)"
            )
        self.logger.debug(
            f"Checking if {session.subject_name} can perform '{action}' "
            f"in {owner}/{resource}"
        )
        decision = await self.gate.authorize(session, owner, resource, action)
        return web.json_response({
            "success": True,
            "owner": owner,
            "repo": resource,
            "user": session.subject_name,
            "action": action,
            "can": decision.allowed,
            "permission": decision.level.value,
            "role": decision.role,
        })

    async def invalidate(self, request: web.Request) -> web.Response:
        session = await self.gate.authenticate(request)
        owner, resource = self._repository(request)
        self.logger.debug(
            f"Invalidating permission cache for {session.subject_name} "
            f"in {owner}/{resource}"
        )
        await self.resolver.invalidate(session.subject_id, owner, resource)
        return web.json_response({
            "success": True,
            "message": "Permission cache invalidated",
            "owner": owner,
            "repo": resource,
            "user": session.subject_name,
        })
