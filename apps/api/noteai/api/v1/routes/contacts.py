from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from noteai.api.v1.deps import get_session
from noteai.api.v1.schemas import ContactOut, ContactsResponse, DescriptionUpdate, InputRequest, OperationResponse
from noteai.services.session import AppSession

router = APIRouter(tags=["contacts"])


@router.get("/contacts", response_model=ContactsResponse)
def list_contacts(session: AppSession = Depends(get_session)) -> ContactsResponse:
    workspace = session.workspace
    return ContactsResponse(
        input_mode=workspace.input_mode,
        search_query=workspace.search_query,
        error=workspace.error_message,
        contacts=[ContactOut.from_contact(contact) for contact in workspace.filtered_contacts],
    )


@router.post("/input", response_model=OperationResponse)
def submit_input(payload: InputRequest, session: AppSession = Depends(get_session)) -> OperationResponse:
    workspace = session.workspace
    result = workspace.process_input(payload.text, payload.mode)
    return OperationResponse.from_result(result, workspace.input_mode)


@router.patch("/contacts/{contact_id}", response_model=OperationResponse)
def update_contact(
    contact_id: uuid.UUID,
    payload: DescriptionUpdate,
    session: AppSession = Depends(get_session),
) -> OperationResponse:
    result = session.workspace.update_contact_description(contact_id, payload.text_description)
    return OperationResponse.from_result(result)


@router.delete("/contacts/{contact_id}", response_model=OperationResponse)
def delete_contact(contact_id: uuid.UUID, session: AppSession = Depends(get_session)) -> OperationResponse:
    return OperationResponse.from_result(session.workspace.delete_contact(contact_id))


@router.post("/contacts/{contact_id}/labels/{label_id}", response_model=OperationResponse)
def assign_label(
    contact_id: uuid.UUID,
    label_id: uuid.UUID,
    session: AppSession = Depends(get_session),
) -> OperationResponse:
    return OperationResponse.from_result(session.workspace.assign_label(contact_id, label_id))


@router.delete("/contacts/{contact_id}/labels/{label_id}", response_model=OperationResponse)
def remove_label(
    contact_id: uuid.UUID,
    label_id: uuid.UUID,
    session: AppSession = Depends(get_session),
) -> OperationResponse:
    return OperationResponse.from_result(session.workspace.remove_label(contact_id, label_id))
