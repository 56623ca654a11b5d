from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Optional, Union

UPLOAD_RE = re.compile(r"upload audio|attach recording", re.I)
DOCUMENT_RE = re.compile(r"view (?:the )?document", re.I)
GENERATE_DOCUMENT_RE = re.compile(r"generate (?:the |a )?document", re.I)
CODE_HINT_RE = re.compile(
    r"\b(?:one[- ]time|verification|otp|2fa|two[- ]factor|pass ?code|(?:authentication|security|login) code)\b", re.I
)
SIX_DIGITS_RE = re.compile(r"(?<!\d)(\d{6})(?!\d)")


@dataclass(frozen=True)
class GenericAction:
    text: str

@dataclass(frozen=True)
class IdleWait:
    text: str

@dataclass(frozen=True)
class UploadMacro:
    text: str

@dataclass(frozen=True)
class DocumentWait:
    text: str

@dataclass(frozen=True)
class CodeEntry:
    text: str
    code: str


StepKind = Union[GenericAction, IdleWait, UploadMacro, DocumentWait, CodeEntry]


def classify(text: str, previous: Optional[str] = None, *, idle_tag: str = "#soloadviser") -> StepKind:
    """Evaluated once per step; the executor dispatches on the returned type."""
    if UPLOAD_RE.search(text):
        return UploadMacro(text)
    if idle_tag and idle_tag in text:
        return IdleWait(text)
    if CODE_HINT_RE.search(text):
        m = SIX_DIGITS_RE.search(text)
        if m:
            return CodeEntry(text, m.group(1))
    if DOCUMENT_RE.search(text) or (previous and GENERATE_DOCUMENT_RE.search(previous)):
        return DocumentWait(text)
    return GenericAction(text)
