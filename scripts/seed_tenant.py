# scripts/seed_tenant.py
"""
Create (or find) a tenant and print a bearer token for the tenant API.

    python scripts/seed_tenant.py acme "Acme Plumbing" +18145551234 --credits 50
"""
import argparse
import sys
from decimal import Decimal
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlmodel import Session, select

from sendback.config import settings
from sendback.db import build_engine, create_db_and_tables
from sendback.deps import create_access_token
from sendback.models import Tenant
from sendback.utils.phone import to_e164


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("username")
    parser.add_argument("business_name")
    parser.add_argument("phone_number", nargs="?", default="")
    parser.add_argument("--credits", default="0")
    args = parser.parse_args()

    engine = build_engine(settings.DATABASE_URL)
    create_db_and_tables(engine)

    with Session(engine) as s:
        t = s.exec(select(Tenant).where(Tenant.username == args.username)).first()
        if not t:
            t = Tenant(
                username=args.username,
                business_name=args.business_name,
                phone_number=to_e164(args.phone_number),
                auto_response_message=settings.DEFAULT_AUTO_RESPONSE,
                credit_balance=Decimal(args.credits),
            )
            s.add(t)
            s.commit()
            s.refresh(t)
            print("created tenant:", t.username, "id =", t.id)
        else:
            print("tenant exists:", t.username, "id =", t.id)

        print("token:", create_access_token(settings, t.id))


if __name__ == "__main__":
    main()
