"""
Database initialization script
Run this to create tables and seed the default commission rules
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from rentflow.core.database import engine, Base, SessionLocal
from rentflow.services.commission_rules import CommissionRuleService, seed_default_rules
import rentflow.models  # noqa: F401


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed default commission rules"""
    db = SessionLocal()

    try:
        print("\nSeeding commission rules...")
        created = seed_default_rules(db)
        print(f"✓ {created} commission rule(s) created")

        for rule in CommissionRuleService(db).list_rules(include_inactive=False):
            print(f"  - {rule.action_type}: {rule.commission_type.value} {rule.commission_value}")
    except Exception as e:
        print(f"✗ Error seeding data: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
    seed_data()
    print("\n✓ Database initialization complete!")
