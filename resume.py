"""
Resume text and contact extraction.

Best effort: a field that cannot be found is simply left out, which sends
the candidate through info collection. Only a document with no readable
text at all is an error.
"""

import io
import re
import logging
import pdfplumber
from docx import Document

from errors import ExtractionFailure
from deps import normalize_phone

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(?:\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
NAME_WORD_RE = re.compile(r"^[A-Za-z]+[A-Za-z\-'.]*$")
NOT_NAME_HINTS = ("resume", "curriculum", "cv")
DOCX_MAGIC = b"PK\x03\x04"
# whitespace controls allowed in a plain text resume
TEXT_CONTROL_CHARS = "\t\n\f\r"


def _decode_text(data: bytes, filename: str) -> str:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        logger.warning("Resume %r is not a PDF, DOCX or UTF-8 text file", filename)
        raise ExtractionFailure() from e
    if any(c < " " and c not in TEXT_CONTROL_CHARS for c in text):
        logger.warning("Resume %r contains binary data", filename)
        raise ExtractionFailure()
    return text


def read_text(data: bytes, filename: str = "") -> str:
    name = (filename or "").lower()
    if not (name.endswith((".pdf", ".docx")) or data[:5] == b"%PDF-" or data[:4] == DOCX_MAGIC):
        return _decode_text(data, filename)
    try:
        if name.endswith(".pdf") or data[:5] == b"%PDF-":
            text = ""
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                for p in pdf.pages:
                    text += (p.extract_text() or "") + "\n"
            return text
        doc = Document(io.BytesIO(data))
        return "\n".join(p.text for p in doc.paragraphs)
    except Exception as e:
        # pdfplumber and python-docx raise a wide range of parser errors
        logger.warning("Could not read resume %r: %s", filename, e)
        raise ExtractionFailure() from e


def find_name(text: str):
    for line in text.splitlines():
        line = line.strip()
        if (
            len(line) < 3
            or len(line) > 50
            or "@" in line
            or line[0].isdigit()
            or any(hint in line.lower() for hint in NOT_NAME_HINTS)
        ):
            continue
        words = line.split()
        if 2 <= len(words) <= 4 and all(NAME_WORD_RE.match(w) and len(w) >= 2 for w in words):
            return line
    return None


def extract_contact_info(data: bytes, filename: str = "") -> dict:
    text = read_text(data, filename)
    if not text.strip():
        raise ExtractionFailure()

    email = EMAIL_RE.search(text)
    phone = PHONE_RE.search(text)
    return {
        "name": find_name(text),
        "email": email.group(0) if email else None,
        "phone": normalize_phone(phone.group(0)) if phone else None,
        "text": text,
    }
