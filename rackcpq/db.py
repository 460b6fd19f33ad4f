import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session


def _build_database_url() -> str:
	url = os.getenv("DATABASE_URL")
	if not url:
		return "sqlite:///./rackcpq.db"
	return url


DATABASE_URL = _build_database_url()

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, future=True, connect_args=connect_args)
# expire_on_commit is off so quotes and configurations handed to background
# jobs and response builders keep their loaded state after commit.
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


@contextmanager
def db_session_scope() -> Generator[Session, None, None]:
	"""Provide a transactional scope around a series of operations."""
	session = SessionLocal()
	try:
		yield session
		session.commit()
	except Exception:
		session.rollback()
		raise
	finally:
		session.close()


def init_db(drop: bool = False) -> None:
	# the ORM classes must be imported before Base knows about their tables
	from . import models  # noqa: F401

	if drop:
		Base.metadata.drop_all(bind=engine)
	Base.metadata.create_all(bind=engine)
