from shared.database import Base, get_engine, get_session

from .config import RENTAL_DB, RENTAL_DB_ECHO

engine = get_engine(RENTAL_DB, echo=RENTAL_DB_ECHO)
SessionLocal = get_session(engine)

__all__ = ["Base", "engine", "SessionLocal"]
