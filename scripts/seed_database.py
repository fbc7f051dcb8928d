#!/usr/bin/env python3
"""
Seed a development database with demo citizens, lawyers, a case and a dispute.

Safe by default (dry-run). Use --apply to persist changes.
"""

import argparse
from datetime import datetime, timedelta

DEMO_PASSWORD = "Demo-pass-123"

LAWYERS = [
    ("Dana Family", "dana@lawyers.example", "family"),
    ("Omar Civil", "omar@lawyers.example", "civil"),
    ("Rita Property", "rita@lawyers.example", "property"),
]
CITIZENS = [
    ("Noa Citizen", "noa@citizens.example"),
    ("Eli Citizen", "eli@citizens.example"),
]


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo data.")
    parser.add_argument("--apply", action="store_true", help="Persist changes (default: dry-run)")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first (requires --apply)")
    args = parser.parse_args()

    from casepilot.auth import AuthService, Principal
    from casepilot.db.models import Citizen, Lawyer, Role
    from casepilot.db.session import drop_db, init_db, session_scope
    from casepilot.services import CaseService, DisputeService, ReminderService, ReportService

    if args.reset:
        if not args.apply:
            print("--reset requires --apply")
            return 1
        drop_db()
        print("Dropped all tables")
    init_db()

    created = []
    with session_scope() as db:
        existing = {(Role.LAWYER, l.email) for l in db.query(Lawyer).all()}
        existing |= {(Role.CITIZEN, c.email) for c in db.query(Citizen).all()}

        todo = [(Role.LAWYER, name, email, spec) for name, email, spec in LAWYERS]
        todo += [(Role.CITIZEN, name, email, None) for name, email in CITIZENS]
        todo = [t for t in todo if (t[0], t[2]) not in existing]

        print(f"Principals to create: {len(todo)}")
        for role, name, email, spec in todo:
            print(f"  {role.value:8} {email}")

        if not args.apply:
            print("Dry-run only. Re-run with --apply to persist.")
            return 0

        auth = AuthService(db)
        for role, name, email, spec in todo:
            _, record = auth.register(role, name, email, DEMO_PASSWORD, specialization=spec)
            created.append(Principal.from_record(record))

        citizens = [p for p in created if p.is_citizen]
        if citizens:
            owner = citizens[0]
            case = CaseService(db).create(
                owner, title="Unpaid deposit", description="Landlord withheld the deposit", case_type="civil",
            )
            dispute = DisputeService(db).create(
                owner,
                title="Noise from upstairs",
                description="Repeated late-night noise",
                defendant={"name": "Upstairs neighbour"},
                category="family",
            )
            print(f"Created case {case.id} and dispute {dispute.id}")

            ReminderService(db).create(
                owner, title="Collect rent receipts", due_date=datetime.utcnow() + timedelta(days=3),
                priority="high", case_id=case.id,
            )
            lawyers = [p for p in created if p.is_lawyer]
            if lawyers:
                report = ReportService(db).create(
                    lawyers[0], title="Intake notes", content="First consultation summary",
                    report_type="case_summary", tags=["intake"],
                )
                ReportService(db).share(lawyers[0], report.id, owner.id, Role.CITIZEN)
                print(f"Created report {report.id} shared with {owner.email}")

    print(f"Created {len(created)} principal(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
