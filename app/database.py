from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import dotenv
import os
dotenv.load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./contact_submissions.db")


def is_sqlite(url):
    return url is not None and url.startswith("sqlite")


def make_engine(url: str = DATABASE_URL):
    connect_args = {"check_same_thread": False} if is_sqlite(url) else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

