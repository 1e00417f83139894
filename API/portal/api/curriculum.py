"""Curriculum drafting: draft programs, modules, lessons, activities and outcomes, plus publish/rollback.

Draft bodies are open objects; the workflow backend owns their shape.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from portal.core.auth import require_admin_actor
from portal.core.logging import DOMAIN_ROUTES, get_domain_logger
from portal.core.portal_route import dump_body, parse_body, require_path_param, run_portal_action
from portal.schemas.payloads import DraftReorderRequest, OpenPayload, PublishRequest, RollbackRequest
from portal.schemas.portal import Actor

router = APIRouter(prefix="/api/admin/curriculum", tags=["curriculum"])
logger = get_domain_logger(__name__, DOMAIN_ROUTES)


def _first_param(request: Request, *names: str) -> str:
    for name in names:
        value = request.query_params.get(name)
        if value:
            return value
    return ""


async def _open_body(request: Request, entity: str) -> dict:
    payload = await parse_body(request, OpenPayload, f"Invalid {entity} payload")
    return payload.model_dump()


async def _update_draft(request: Request, actor: Actor, *, entity: str, key: str, value: str, param: str):
    code = "MISSING_" + key.upper()
    value = require_path_param(value, param, code)
    body = await _open_body(request, entity)
    action = "portal.admin.updateDraft" + entity.capitalize()
    return await run_portal_action(action, actor, {**body, key: value})


# Programs


@router.get("/draft/programs")
async def draft_programs(actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.getDraftPrograms", actor)


@router.post("/draft/programs")
async def create_draft_program(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.createDraftProgram", actor, await _open_body(request, "program"))


@router.patch("/draft/programs/{program_id}")
async def update_draft_program(program_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    return await _update_draft(
        request, actor, entity="program", key="program_id", value=program_id, param="programId"
    )


# Modules


@router.get("/draft/modules")
async def draft_modules(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getDraftModules", actor, {"program_id": _first_param(request, "programId", "program_id")}
    )


@router.post("/draft/modules")
async def create_draft_module(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.createDraftModule", actor, await _open_body(request, "module"))


@router.patch("/draft/modules/{module_id}")
async def update_draft_module(module_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    return await _update_draft(request, actor, entity="module", key="module_id", value=module_id, param="moduleId")


# Lessons


@router.get("/draft/lessons")
async def draft_lessons(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getDraftLessons",
        actor,
        {
            "program_id": _first_param(request, "programId", "program_id"),
            "module_id": _first_param(request, "moduleId", "module_id"),
        },
    )


@router.post("/draft/lessons")
async def create_draft_lesson(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.createDraftLesson", actor, await _open_body(request, "lesson"))


@router.patch("/draft/lessons/{lesson_key}")
async def update_draft_lesson(lesson_key: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    return await _update_draft(request, actor, entity="lesson", key="lesson_key", value=lesson_key, param="lessonKey")


# Activities and outcomes


@router.get("/draft/activities")
async def draft_activities(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action(
        "portal.admin.getDraftActivities", actor, {"lesson_key": _first_param(request, "lessonKey", "lesson_key")}
    )


@router.post("/draft/activities")
async def create_draft_activity(request: Request, actor: Actor = Depends(require_admin_actor)):
    return await run_portal_action("portal.admin.createDraftActivity", actor, await _open_body(request, "activity"))


@router.patch("/draft/activities/{activity_id}")
async def update_draft_activity(activity_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    return await _update_draft(
        request, actor, entity="activity", key="activity_id", value=activity_id, param="activityId"
    )


@router.patch("/draft/outcomes/{outcome_id}")
async def update_draft_outcome(outcome_id: str, request: Request, actor: Actor = Depends(require_admin_actor)):
    return await _update_draft(
        request, actor, entity="outcome", key="outcome_id", value=outcome_id, param="outcomeId"
    )


# Ordering and release


@router.post("/draft/reorder")
async def reorder_draft_entities(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, DraftReorderRequest, "Invalid reorder payload")
    return await run_portal_action("portal.admin.reorderDraftEntities", actor, dump_body(payload))


@router.post("/publish")
async def publish_curriculum(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, PublishRequest, "Invalid publish payload")
    logger.info("curriculum publish requested | by=%s program_id=%s", actor.email, payload.program_id or "*")
    return await run_portal_action("portal.admin.publishCurriculum", actor, dump_body(payload))


@router.post("/rollback")
async def rollback_curriculum(request: Request, actor: Actor = Depends(require_admin_actor)):
    payload = await parse_body(request, RollbackRequest, "Invalid rollback payload")
    logger.info("curriculum rollback requested | by=%s batch=%s", actor.email, payload.publish_batch_id or "latest")
    return await run_portal_action("portal.admin.rollbackCurriculum", actor, dump_body(payload))
