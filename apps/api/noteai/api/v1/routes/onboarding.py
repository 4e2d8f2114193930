from __future__ import annotations

from fastapi import APIRouter, Depends

from noteai.api.v1.deps import get_session
from noteai.api.v1.schemas import ImportProgressOut, ImportResponse, ImportSummaryOut, OnboardingStatus
from noteai.services.onboarding import ImportProgress, run_import_safely
from noteai.services.session import AppSession

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.get("", response_model=OnboardingStatus)
def onboarding_status(session: AppSession = Depends(get_session)) -> OnboardingStatus:
    return OnboardingStatus(has_completed_onboarding=session.onboarding.check_status())


@router.post("/import", response_model=ImportResponse)
def import_device_contacts(session: AppSession = Depends(get_session)) -> ImportResponse:
    steps: list[ImportProgress] = []
    summary, error = run_import_safely(session.onboarding, steps.append)
    if summary is not None:
        # Imported contacts and labels are only visible after a reload.
        session.workspace.load_labels()
        session.workspace.load_contacts()

    return ImportResponse(
        ok=summary is not None,
        error=error,
        has_completed_onboarding=session.onboarding.has_completed_onboarding,
        summary=ImportSummaryOut(**vars(summary)) if summary is not None else None,
        progress=[ImportProgressOut(imported=step.imported, total=step.total, fraction=step.fraction) for step in steps],
    )


@router.post("/skip", response_model=OnboardingStatus)
def skip_onboarding(session: AppSession = Depends(get_session)) -> OnboardingStatus:
    session.onboarding.skip_onboarding()
    return OnboardingStatus(has_completed_onboarding=session.onboarding.has_completed_onboarding)
