from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy.orm import Session

# Ensure "tradeops" is importable when running as a script (python scripts/seed_users.py)
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tradeops import models  # noqa: E402
from tradeops.core.security import create_access_token_for_subject  # noqa: E402
from tradeops.database import session_scope  # noqa: E402
from tradeops.services.approval_rules import seed_default_rules  # noqa: E402

TARGETS = [
    ("admin", models.RoleName.admin, "Administrator"),
    ("trader", models.RoleName.trader, "Trader"),
    ("hedging", models.RoleName.hedging, "Hedging Desk"),
    ("cfo", models.RoleName.cfo, "CFO"),
    ("management", models.RoleName.management, "Management"),
    ("operations", models.RoleName.operations, "Operations"),
]


def ensure_role(db: Session, role_name: models.RoleName) -> models.Role:
    role = db.query(models.Role).filter(models.Role.name == role_name).first()
    if role:
        return role
    role = models.Role(name=role_name, description=role_name.value)
    db.add(role)
    db.flush()
    return role


def ensure_user(db: Session, *, email: str, name: str, role: models.Role) -> tuple[models.User, bool]:
    user = db.query(models.User).filter(models.User.email == email).first()
    created = False
    if not user:
        user = models.User(email=email, name=name, role_id=role.id, active=True)
        db.add(user)
        created = True
    else:
        user.name = name
        user.role_id = role.id
        user.active = True
        db.add(user)
    db.flush()
    return user, created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed one dev user per role and print bearer tokens.")
    parser.add_argument("--domain", default="tradeops.local", help="Email domain (default: tradeops.local)")
    parser.add_argument("--expires-minutes", type=int, default=None, help="Token lifetime override")
    parser.add_argument("--no-rules", action="store_true", help="Skip seeding the default approval rules")
    args = parser.parse_args()

    domain = str(args.domain).strip().lstrip("@") or "tradeops.local"

    with session_scope() as db:
        results = []
        for username, role_name, display in TARGETS:
            role = ensure_role(db, role_name)
            user, created = ensure_user(db, email=f"{username}@{domain}", name=display, role=role)
            results.append((user.email, role_name.value, "created" if created else "updated"))
        db.commit()

        rules_created = 0 if args.no_rules else seed_default_rules(db)

    print("Seed users OK:")
    for email, role, status in results:
        token = create_access_token_for_subject(email, expires_minutes=args.expires_minutes)
        print(f"- {email} ({role}) [{status}]")
        print(f"  Bearer {token}")
    print(f"Approval rules created: {rules_created}")


if __name__ == "__main__":
    main()
