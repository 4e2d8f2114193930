from __future__ import annotations

from noteai.services.onboarding.importer import (
    ImportProgress,
    ImportSummary,
    OnboardingService,
    describe_device_contact,
    run_import_safely,
)

__all__ = ["ImportProgress", "ImportSummary", "OnboardingService", "describe_device_contact", "run_import_safely"]
