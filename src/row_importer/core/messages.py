"""Message catalog for import log entries (message_code -> English text)."""

from __future__ import annotations

MESSAGES: dict[str, str] = {
    "required": "Required field is missing.",
    "wrongtype": "Wrong type for field.",
    "importercolumndef": "Field definition has no type.",
    "duplicatefield": "Field declared twice in schema.",
    "columnmissing": "Column missing",
    "nocolumnsdefined": "No columns defined in source header.",
    "wrongcolumnnumber": "Wrong number of columns in row.",
    "wrongencoding": "Source is not encoded as expected.",
    "cannotopenfile": "Cannot open source file.",
    "sourceiniterror": "Initial source error.",
    "sourcereaderror": "Error while reading the next record.",
    "importeriniterror": "Initial importer error.",
    "persistenceerror": "Row could not be stored.",
    "unknowncallback": "Unknown transform callback.",
    "unexpectederror": "Unexpected error while processing row.",
    "templatenotfound": "Template record not found.",
}


def get_message(message_code: str) -> str:
    """Human readable text for a message code (the code itself when unknown)."""
    return MESSAGES.get(message_code, message_code)
