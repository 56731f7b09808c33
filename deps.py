import os
import logging
import phonenumbers
from fastapi import Depends
from dotenv import load_dotenv
from sqlmodel import Session, create_engine, SQLModel

from errors import ValidationError
from storage import Store
import utils

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./interview.db")
DEFAULT_PHONE_REGION = os.getenv("DEFAULT_PHONE_REGION", "US")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)


def get_session():
    with Session(engine) as session:
        yield session


def get_store(session: Session = Depends(get_session)):
    return Store(session)


def get_ai():
    return utils


def to_e164(raw: str, region: str = None) -> str:
    cleaned = "".join(c for c in raw if c.isdigit() or c == "+")
    try:
        num = phonenumbers.parse(cleaned, None if cleaned.startswith("+") else (region or DEFAULT_PHONE_REGION))
    except phonenumbers.NumberParseException as e:
        raise ValidationError("Invalid phone number") from e
    if not phonenumbers.is_valid_number(num):
        raise ValidationError("Invalid phone number")
    return phonenumbers.format_number(num, phonenumbers.PhoneNumberFormat.E164)


def normalize_phone(raw: str) -> str:
    """Best effort E.164, the raw text is kept when it does not parse."""
    try:
        return to_e164(raw)
    except ValidationError:
        logger.info("Keeping unparsed phone number %r", raw)
        return raw.strip()


def init_db():
    SQLModel.metadata.create_all(engine, checkfirst=True)
