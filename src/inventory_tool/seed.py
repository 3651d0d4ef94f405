"""Seed users and the default reference buckets used by imports"""
from typing import List, Tuple
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.inventory_tool.config import settings
from src.inventory_tool.database import SessionLocal, engine
from src.inventory_tool.models import Base
from src.inventory_tool.models.category import Category
from src.inventory_tool.models.location import Location
from src.inventory_tool.models.user import User, UserRole

SEED_USERS: List[Tuple[str, str, UserRole]] = [
    ("admin@example.com", "System Admin", UserRole.ADMIN),
    ("operator@example.com", "Warehouse Operator", UserRole.OPERATOR),
]


def _get_or_create(db: Session, model, lookup, **values):
    found = db.execute(select(model).where(lookup)).scalar_one_or_none()
    if found:
        print(f"{model.__name__} already exists: {found.id}")
        return found

    record = model(**values)
    db.add(record)
    db.commit()
    db.refresh(record)
    print(f"Created {model.__name__} (ID: {record.id})")
    return record


def seed_users(db: Session) -> List[User]:
    return [
        _get_or_create(db, User, User.email == email, email=email, name=name, role=role, is_active=True)
        for email, name, role in SEED_USERS
    ]


def create_default_category(db: Session) -> Category:
    name = settings.DEFAULT_CATEGORY_NAME
    return _get_or_create(
        db, Category, Category.name == name,
        name=name, description="Items imported without a known category"
    )


def create_default_location(db: Session) -> Location:
    name = settings.DEFAULT_LOCATION_NAME
    return _get_or_create(
        db, Location, Location.name == name,
        name=name, description="Items imported without a known location", location_type="warehouse"
    )


def run_seed():
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed_users(db)
        create_default_category(db)
        create_default_location(db)
    print("Seed completed")


if __name__ == "__main__":
    run_seed()
