"""
Canonical document-type codes keyed by document question id.

The table is closed: an id missing from it is an error, never a guess.
"""
from typing import Dict

from leadbot.core.errors import DocumentTypeError


DOCUMENT_TYPE_CODES: Dict[str, str] = {
    "Eid_front": "EMIRATESID_FRONT",
    "Eid_back": "EMIRATESID_BACK",
    "DL_front": "DRIVINGLICENSE_FRONT",
    "DL_back": "DRIVINGLICENSE_BACK",
    "mulkiya_front": "MULKIYA_FRONT",
    "mulkiya_back": "MULKIYA_BACK",
}


def resolve_document_type(question_id: str) -> str:
    """Map a document question id to its canonical type code."""
    try:
        return DOCUMENT_TYPE_CODES[question_id]
    except KeyError:
        raise DocumentTypeError(question_id) from None


def file_extension(content_type: str) -> str:
    """Declared extension for a MIME type: the subtype, e.g. image/png -> png."""
    _, _, subtype = content_type.partition("/")
    return subtype or "jpeg"
