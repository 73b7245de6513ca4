import random
import sys
import os
from datetime import datetime, timezone

from sqlmodel import Session

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from qc_tracker.core.config import Settings
from qc_tracker.core.db import create_db_engine, create_db_and_tables
from qc_tracker.models.enums import ItemStatus, UserRole
from qc_tracker.models.user import User
from qc_tracker.services.auth import AuthService
from qc_tracker.services.qc import QCService


DEMO_USERS = [
    {
        "username": "leader",
        "password": "leader123",
        "full_name": "Leader Quality Control",
        "role": UserRole.LEADER,
        "email": "leader@qclaptop.com",
    },
    {
        "username": "staff",
        "password": "staff123",
        "full_name": "Quality Control Staff Office",
        "role": UserRole.STAFF,
        "email": "staff@qclaptop.com",
    },
]

BRANDS_AND_MODELS = {
    "Lenovo": ["ThinkPad L14", "ThinkPad T14", "ThinkPad E14", "IdeaPad 5"],
    "Dell": ["Latitude 5440", "Latitude 7440", "Vostro 3520"],
    "HP": ["ProBook 440 G10", "EliteBook 840 G10", "250 G9"],
    "Asus": ["ExpertBook B1", "Vivobook 14"],
    "Acer": ["TravelMate P2", "Aspire 5"],
}

ROOMS = ["Ruang A", "Ruang B", "Ruang C"]
LINES = ["Line 1", "Line 2", "Line 3", "Line 4"]
TABLES = ["Meja 1", "Meja 2", "Meja 3", "Meja 4", "Meja 5", "Meja 6"]


def random_serial() -> str:
    return f"SN-{datetime.now(timezone.utc).strftime('%y%m')}-{random.randint(100000, 999999)}"


def seed_users(session: Session) -> User:
    for data in DEMO_USERS:
        password_hash = AuthService.hash_password(data["password"])
        user = session.query(User).filter(User.username == data["username"]).first()
        if user is None:
            session.add(User(
                username=data["username"],
                password_hash=password_hash,
                full_name=data["full_name"],
                role=data["role"],
                email=data["email"],
                is_active=True,
            ))
            print(f"Created user: {data['username']} ({data['role'].value})")
        else:
            user.password_hash = password_hash
            user.full_name = data["full_name"]
            user.role = data["role"]
            user.email = data["email"]
            user.is_active = True
            print(f"Updated user: {data['username']}")
    session.commit()

    return session.query(User).filter(User.username == "staff").first()


def seed_laptops(session: Session, operator: User, count: int) -> None:
    qc_service = QCService(session)
    current_user = {
        "user_id": operator.id,
        "username": operator.username,
        "full_name": operator.full_name,
        "role": operator.role.value,
    }

    failed = 0
    for _ in range(count):
        brand = random.choice(list(BRANDS_AND_MODELS))
        started = qc_service.start_session(
            random_serial(),
            current_user,
            model=random.choice(BRANDS_AND_MODELS[brand]),
            brand=brand,
            ip_address="127.0.0.1",
        )

        # roughly one laptop in five ends up needing repair
        fail_one = random.random() < 0.2
        failing_id = random.choice(started["checklist_items"]).id if fail_one else None
        items = [
            {
                "id": item.id,
                "is_checked": True,
                "status": ItemStatus.FAIL.value if item.id == failing_id else ItemStatus.PASS.value,
                "notes": "Perlu dicek ulang" if item.id == failing_id else None,
            }
            for item in started["checklist_items"]
        ]
        failed += int(fail_one)

        qc_service.submit_session(
            started["qc_session"].id,
            {
                "qc_name": operator.full_name,
                "qc_room": random.choice(ROOMS),
                "qc_line": random.choice(LINES),
                "qc_table": random.choice(TABLES),
                "checklist_items": items,
            },
            current_user,
            ip_address="127.0.0.1",
        )

    print(f"Seeded {count} laptops through QC ({failed} need repair).")


def seed(laptops: int = 0) -> None:
    settings = Settings()
    engine = create_db_engine(settings.database_url)
    create_db_and_tables(engine)

    with Session(engine) as session:
        operator = seed_users(session)
        if laptops:
            seed_laptops(session, operator, laptops)

    print("Demo login: leader / leader123, staff / staff123")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed demo users and optional dummy QC data")
    parser.add_argument("--laptops", type=int, default=0, help="Number of dummy laptops to run through QC (default: 0)")
    args = parser.parse_args()

    seed(args.laptops)
