from __future__ import annotations

import argparse
import uuid

from noteai.core.config import get_settings
from noteai.core.logging import configure_logging
from noteai.services.onboarding import ImportProgress, run_import_safely
from noteai.services.session import AppSession


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import the device address book into an owner's contacts.")
    parser.add_argument("--owner-id", required=True, type=uuid.UUID, help="Owner (user) id to import for")
    parser.add_argument("--vcf", default=None, help="vCard file to read instead of DEVICE_CONTACTS_PATH")
    parser.add_argument("--skip", action="store_true", help="Mark onboarding completed without importing")
    return parser.parse_args()


def _print_progress(progress: ImportProgress) -> None:
    print(f"Imported {progress.imported}/{progress.total} ({progress.fraction:.0%})")


def main() -> None:
    args = _parse_args()
    configure_logging()
    settings = get_settings()
    if args.vcf:
        # An explicit file counts as granted access.
        settings = settings.model_copy(update={"device_contacts_path": args.vcf, "device_contacts_access_granted": True})

    session = AppSession.from_settings(settings, args.owner_id)
    try:
        session.start()
        if args.skip:
            session.onboarding.skip_onboarding()
            print("Onboarding skipped")
            return
        if session.onboarding.has_completed_onboarding:
            print("Onboarding already completed; importing again")

        summary, error = run_import_safely(session.onboarding, _print_progress)
        if summary is None:
            print(error)
            raise SystemExit(1)
        print(
            f"Created {summary.created} contacts, skipped {summary.skipped}, "
            f"added {summary.labels_created} labels"
        )
    finally:
        session.close()


if __name__ == "__main__":
    main()
