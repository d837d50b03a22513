"""Tasks API - Tasks, subtasks and task comments"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_current_user_dep, PageParams
from .schemas import ListResponse, ActionResponse, DeleteResponse, page_response
from ...domain.models import Principal
from ...domain.inputs import TaskCreate, TaskUpdate, QuickAssign, CommentCreate
from ...domain.enums import EntityType
from ...domain.errors import DomainError
from ...services.task_service import TaskService
from ...services.comment_service import CommentService

router = APIRouter()


# =============================================================================
# Tasks
# =============================================================================

@router.get("", response_model=ListResponse)
async def list_tasks(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None, alias="projectId"),
    assignee_id: Optional[str] = Query(None, alias="assigneeId"),
    search: Optional[str] = Query(None, max_length=200),
    include_subtasks: bool = Query(False, alias="includeSubtasks"),
    mine: bool = Query(False),
    paging: PageParams = Depends(),
    actor: Principal = Depends(get_current_user_dep)
):
    """Top-level tasks by default; includeSubtasks=true lists subtasks too"""
    try:
        items, pagination = TaskService().list_tasks(
            actor,
            status=status_filter,
            priority=priority,
            project_id=project_id,
            assignee_id=assignee_id,
            search=search,
            include_subtasks=include_subtasks,
            mine=mine,
            **paging.as_kwargs()
        )
        return page_response(items, pagination)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return TaskService().create_task(actor, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return TaskService().get_task(actor, task_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    """Partial update; a status change must follow the task lifecycle"""
    try:
        return TaskService().update_task(actor, task_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{task_id}/assignee")
async def assign_task(
    task_id: str,
    payload: QuickAssign,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return TaskService().assign_task(actor, task_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{task_id}", response_model=DeleteResponse)
async def delete_task(
    task_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    """Delete a task together with its subtasks and comments"""
    try:
        result = TaskService().delete_task(actor, task_id)
        return DeleteResponse(deleted=result.deleted)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Subtasks
# =============================================================================

@router.get("/{task_id}/subtasks")
async def list_subtasks(
    task_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> List[Dict[str, Any]]:
    try:
        return [t.to_api() for t in TaskService().list_subtasks(actor, task_id)]
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{task_id}/subtasks", status_code=status.HTTP_201_CREATED)
async def create_subtask(
    task_id: str,
    payload: TaskCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    """Create a subtask; it inherits the parent's project"""
    try:
        return TaskService().create_task(actor, payload, parent_task_id=task_id).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# =============================================================================
# Comments
# =============================================================================

@router.get("/{task_id}/comments")
async def list_task_comments(
    task_id: str,
    actor: Principal = Depends(get_current_user_dep)
) -> List[Dict[str, Any]]:
    try:
        comments = CommentService().list_comments(actor, EntityType.TASK, task_id)
        return [c.to_api() for c in comments]
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{task_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_task_comment(
    task_id: str,
    payload: CommentCreate,
    actor: Principal = Depends(get_current_user_dep)
) -> Dict[str, Any]:
    try:
        return CommentService().add_comment(actor, EntityType.TASK, task_id, payload).to_api()
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.delete("/{task_id}/comments/{comment_id}", response_model=ActionResponse)
async def delete_task_comment(
    task_id: str,
    comment_id: str,
    actor: Principal = Depends(get_current_user_dep)
):
    try:
        CommentService().delete_comment(actor, EntityType.TASK, task_id, comment_id)
        return ActionResponse(message="Comment deleted")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
