from __future__ import annotations

from fastapi import APIRouter, Depends

from noteai.api.v1.deps import get_session
from noteai.api.v1.schemas import LabelCreate, LabelOut, LabelsResponse, OperationResponse
from noteai.services.session import AppSession

router = APIRouter(prefix="/labels", tags=["labels"])


@router.get("", response_model=LabelsResponse)
def list_labels(session: AppSession = Depends(get_session)) -> LabelsResponse:
    return LabelsResponse(labels=[LabelOut.from_label(label) for label in session.workspace.labels])


@router.post("", response_model=OperationResponse)
def create_label(payload: LabelCreate, session: AppSession = Depends(get_session)) -> OperationResponse:
    return OperationResponse.from_result(session.workspace.create_label(payload.name))


@router.delete("/{name}", response_model=OperationResponse)
def delete_label(name: str, session: AppSession = Depends(get_session)) -> OperationResponse:
    return OperationResponse.from_result(session.workspace.delete_label(name))
