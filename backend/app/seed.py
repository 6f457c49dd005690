"""
Seed script for a couple's default categories.
"""

import sys
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from app.database import SessionLocal, init_db
from app.models import Category
from app.services.categorization_service import DEFAULT_CATEGORIES


def seed_default_categories(db: Session, couple_id: str) -> int:
    """Create the default categories the couple does not have yet. Returns how many were added."""
    existing = {
        c.key for c in db.query(Category).filter(Category.couple_id == couple_id).all()
    }

    added = 0
    for key, data in DEFAULT_CATEGORIES.items():
        if key in existing:
            continue
        db.add(Category(
            id=str(uuid.uuid4()),
            couple_id=couple_id,
            key=key,
            name=data["name"],
            icon=data["icon"],
            default_budget=Decimal(data["default_budget"]),
            is_default=True,
            keywords=[],
        ))
        added += 1

    db.commit()
    return added


def main(couple_id: str):
    init_db()
    db = SessionLocal()
    try:
        added = seed_default_categories(db, couple_id)
        print(f"Seeded {added} default categories for couple {couple_id}")
    except Exception as e:
        print(f"Error seeding categories: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python -m app.seed <couple_id>")
        sys.exit(1)
    main(sys.argv[1])
