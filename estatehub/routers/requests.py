"""
Approval request endpoints: role-upgrade registration and agent-to-agency linking.
Moderator resolution of registration requests lives in the admin router.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from typing import List, Optional
from uuid import UUID
from estatehub.models.requests import RequestStatus
from estatehub.models.user import User
from estatehub.services.approval import RegistrationWorkflow, LinkingWorkflow
from estatehub.schemas.listing import RejectRequest
from estatehub.schemas.user import UserResponse
from estatehub.schemas.requests import (
    RegistrationRequestCreate,
    RegistrationRequestResponse,
    LinkingRequestCreate,
    LinkingRequestResponse,
)
from estatehub.schemas.error import get_error_responses
from estatehub.utils.dependencies import (
    get_current_active_user,
    get_registration_workflow,
    get_linking_workflow,
)


registration_router = APIRouter(prefix="/registration-requests", tags=["Registration Requests"])
linking_router = APIRouter(prefix="/linking-requests", tags=["Linking Requests"])


@registration_router.post(
    "",
    response_model=RegistrationRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a professional role",
    description="An individual applies to become an agent, agency or promoter.",
    responses=get_error_responses(401, 403, 409, 422)
)
async def submit_registration_request(
    request_data: RegistrationRequestCreate,
    current_user: User = Depends(get_current_active_user),
    workflow: RegistrationWorkflow = Depends(get_registration_workflow)
) -> RegistrationRequestResponse:
    request = await workflow.submit(current_user, request_data.model_dump())
    return RegistrationRequestResponse.model_validate(request)


@registration_router.get(
    "/mine",
    response_model=List[RegistrationRequestResponse],
    summary="My registration requests",
    responses=get_error_responses(401)
)
async def list_my_registration_requests(
    current_user: User = Depends(get_current_active_user),
    workflow: RegistrationWorkflow = Depends(get_registration_workflow)
) -> List[RegistrationRequestResponse]:
    requests = await workflow.list_for_user(current_user.id)
    return [RegistrationRequestResponse.model_validate(request) for request in requests]


@linking_router.post(
    "",
    response_model=LinkingRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request to join an agency",
    responses=get_error_responses(401, 403, 404, 409)
)
async def submit_linking_request(
    request_data: LinkingRequestCreate,
    current_user: User = Depends(get_current_active_user),
    workflow: LinkingWorkflow = Depends(get_linking_workflow)
) -> LinkingRequestResponse:
    request = await workflow.submit(current_user, request_data.model_dump())
    return LinkingRequestResponse.model_validate(request)


@linking_router.get(
    "/mine",
    response_model=List[LinkingRequestResponse],
    summary="My linking requests",
    responses=get_error_responses(401)
)
async def list_my_linking_requests(
    current_user: User = Depends(get_current_active_user),
    workflow: LinkingWorkflow = Depends(get_linking_workflow)
) -> List[LinkingRequestResponse]:
    requests = await workflow.list_for_agent(current_user.id)
    return [LinkingRequestResponse.model_validate(request) for request in requests]


@linking_router.get(
    "/incoming",
    response_model=List[LinkingRequestResponse],
    summary="Linking requests addressed to my agency",
    responses=get_error_responses(401)
)
async def list_incoming_linking_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    workflow: LinkingWorkflow = Depends(get_linking_workflow)
) -> List[LinkingRequestResponse]:
    requests = await workflow.list_incoming(current_user.id, status_filter)
    return [LinkingRequestResponse.model_validate(request) for request in requests]


@linking_router.get(
    "/agents",
    response_model=List[UserResponse],
    summary="Agents linked to an agency",
    description="An agency lists its own agents; a moderator may pass agency_id.",
    responses=get_error_responses(401, 403)
)
async def list_linked_agents(
    agency_id: Optional[UUID] = Query(None, description="Agency to list, moderators only"),
    current_user: User = Depends(get_current_active_user),
    workflow: LinkingWorkflow = Depends(get_linking_workflow)
) -> List[UserResponse]:
    agents = await workflow.list_agents(current_user, agency_id)
    return [UserResponse.model_validate(agent) for agent in agents]


@linking_router.post(
    "/{request_id}/approve",
    response_model=LinkingRequestResponse,
    summary="Approve a linking request",
    description="The target agency or a moderator links the agent to the agency.",
    responses=get_error_responses(401, 403, 404, 409)
)
async def approve_linking_request(
    request_id: UUID = Path(..., description="Linking request ID"),
    current_user: User = Depends(get_current_active_user),
    workflow: LinkingWorkflow = Depends(get_linking_workflow)
) -> LinkingRequestResponse:
    request = await workflow.approve(request_id, current_user)
    return LinkingRequestResponse.model_validate(request)


@linking_router.post(
    "/{request_id}/reject",
    response_model=LinkingRequestResponse,
    summary="Reject a linking request",
    responses=get_error_responses(401, 403, 404, 409, 422)
)
async def reject_linking_request(
    rejection: RejectRequest,
    request_id: UUID = Path(..., description="Linking request ID"),
    current_user: User = Depends(get_current_active_user),
    workflow: LinkingWorkflow = Depends(get_linking_workflow)
) -> LinkingRequestResponse:
    request = await workflow.reject(request_id, current_user, rejection.reason)
    return LinkingRequestResponse.model_validate(request)
