import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from contextlib import contextmanager

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.postboard.config import load_settings
from app.postboard.models import Base, User


@contextmanager
def _session_scope(engine):
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def init_db(*, database_url: str | None = None) -> None:
    """
    Create missing tables and, when DEMO_USER_NAME is set, seed a demo user.
    Idempotent: does NOT overwrite an existing user's password.
    """
    db_url = (database_url or load_settings().database_url).strip()
    engine = create_engine(db_url, future=True)
    Base.metadata.create_all(bind=engine)
    print(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")

    demo_name = (os.environ.get("DEMO_USER_NAME") or "").strip()
    if not demo_name:
        return
    demo_email = (os.environ.get("DEMO_USER_EMAIL") or f"{demo_name}@example.com").strip().lower()
    demo_password = os.environ.get("DEMO_USER_PASSWORD") or "change-me"

    with _session_scope(engine) as s:
        user = s.query(User).filter(User.name == demo_name).one_or_none()
        if not user:
            s.add(User(name=demo_name, email=demo_email, password_hash=generate_password_hash(demo_password), is_active=True))
            print(f"Seeded demo user: {demo_name}")
        else:
            print(f"Demo user already exists: {demo_name}")


def main() -> None:
    init_db(database_url=None)


if __name__ == "__main__":
    main()
