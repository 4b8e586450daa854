from collections.abc import Generator

from sqlalchemy.orm import Session

from allocator.db.session import SessionLocal
from allocator.services.solver_bridge import SolverClient


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_solver_client() -> SolverClient:
    return SolverClient.from_settings()
