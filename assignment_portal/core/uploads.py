"""
Upload admission rules for assignment submissions.

A submission is a single PDF whose filename follows the configured naming
policy. The checks here are pure: they never touch storage or the database.
"""

import re
import unicodedata
from dataclasses import dataclass, replace
from enum import Enum

from fastapi import HTTPException, status

PDF_CONTENT_TYPE = 'application/pdf'


class FilenamePolicy(str, Enum):
    CJK_ONLY = 'cjk'
    MIXED = 'mixed'


@dataclass(frozen=True)
class FilenameRule:
    pattern: re.Pattern[str]
    error: str


FILENAME_RULES: dict[FilenamePolicy, FilenameRule] = {
    FilenamePolicy.CJK_ONLY: FilenameRule(
        pattern=re.compile(r'^[\u4e00-\u9fff]+\.pdf$'),
        error='Filename must contain only Chinese characters and end with .pdf (e.g., 王小明.pdf)',
    ),
    FilenamePolicy.MIXED: FilenameRule(
        pattern=re.compile(r'^[\u4e00-\u9fffA-Za-z0-9 _\-]+\.[pP][dD][fF]$'),
        error=(
            'Filename may only contain Chinese characters, letters, digits, spaces, '
            'underscores or hyphens and must end with .pdf'
        ),
    ),
}


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    content: bytes


def decode_filename(raw: str) -> str:
    """Undo UTF-8 names that a client or parser decoded as Latin-1."""
    try:
        return raw.encode('latin-1').decode('utf-8')
    except (UnicodeEncodeError, UnicodeDecodeError):
        return raw


def normalize_filename(raw: str) -> str:
    return unicodedata.normalize('NFKC', decode_filename(raw).strip())


def is_filename_allowed(filename: str, policy: FilenamePolicy) -> bool:
    return FILENAME_RULES[policy].pattern.fullmatch(filename) is not None


def admit_upload(
    upload: UploadedFile | None,
    policy: FilenamePolicy,
    max_bytes: int,
) -> UploadedFile:
    if upload is None or not upload.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='No file uploaded')

    if upload.content_type != PDF_CONTENT_TYPE:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Only PDF files are allowed')

    if not upload.content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Uploaded file is empty')

    if len(upload.content) > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'File exceeds the {limit_mb:g} MB upload limit',
        )

    filename = normalize_filename(upload.filename)
    if not is_filename_allowed(filename, policy):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=FILENAME_RULES[policy].error)

    return replace(upload, filename=filename)
