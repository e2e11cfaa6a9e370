"""
Transcript upload gate.

Streams a multipart body into memory (never to disk) and accepts exactly one
PDF in the `transcript` field. Checks run in the order the data arrives:

1. Part headers: MIME type, extension, filename safety
2. Part body: size limit, enforced while streaming
3. Complete file: %PDF signature, active-content markers in the prefix

Every rejection raises UploadRejectedError with a stable reason string and is
logged as a file_upload_violation security event.
"""
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import List, Optional, Tuple

import python_multipart
from python_multipart.multipart import parse_options_header
from fastapi import Request

from app.config import get_settings
from app.services.session_service import client_ip
from app.utils.logger import log_file_upload
from app.utils.errors import UploadRejectedError

settings = get_settings()

UPLOAD_FIELD = "transcript"
ALLOWED_MIME_TYPES = {"application/pdf"}
ALLOWED_EXTENSIONS = {".pdf"}
MAX_FIELD_BYTES = 1024 * 1024

PDF_SIGNATURE = b"%PDF"
CONTENT_SCAN_BYTES = 10000
SUSPICIOUS_MARKERS = [
    re.compile(rb"/JavaScript"),
    re.compile(rb"/JS"),
    re.compile(rb"/Launch"),
    re.compile(rb"/SubmitForm"),
    re.compile(rb"/ImportData"),
    re.compile(rb"/RichMedia"),
    re.compile(rb"/XFA"),
]

MALICIOUS_FILENAME_PATTERNS = [
    re.compile(r"\.\."),  # path traversal
    re.compile(r"[/\\]"),  # directory separators
    re.compile(r'[<>:"|?*\x00-\x1f]'),  # invalid characters
    re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\.|$)", re.IGNORECASE),  # reserved device names
    re.compile(r"\.(exe|bat|cmd|com|pif|scr|vbs|js|jar|dll|so|dylib)(\.|$)", re.IGNORECASE),  # executables
]

REASON_NO_FILE = "No file uploaded"
REASON_TOO_MANY = "Only one file allowed per request"
REASON_UNEXPECTED_FIELD = "Unexpected file field"
REASON_MIME = "Only PDF files are allowed"
REASON_EXTENSION = "Invalid file extension"
REASON_FILENAME = "Invalid filename"
REASON_SIZE = "File size exceeds 10MB limit"
REASON_FIELD_SIZE = "Field size exceeds limit"
REASON_SIGNATURE = "Invalid PDF file content"
REASON_ACTIVE_CONTENT = "PDF contains potentially harmful content"


@dataclass
class UploadedFile:
    """A validated PDF held in memory."""
    filename: str
    content_type: str
    data: bytearray = field(default_factory=bytearray)

    @property
    def size(self) -> int:
        return len(self.data)

    def discard(self) -> None:
        """Drop the buffer once processing is done."""
        self.data = bytearray()


def check_file_metadata(filename: str, content_type: str) -> None:
    """Reject on MIME type, extension or unsafe filename."""
    if content_type.lower() not in ALLOWED_MIME_TYPES:
        raise UploadRejectedError(REASON_MIME)

    if PurePath(filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise UploadRejectedError(REASON_EXTENSION)

    for pattern in MALICIOUS_FILENAME_PATTERNS:
        if pattern.search(filename):
            raise UploadRejectedError(REASON_FILENAME)


def check_pdf_content(data: bytes) -> None:
    """Reject content without the PDF signature or with active-content markers."""
    if bytes(data[:4]) != PDF_SIGNATURE:
        raise UploadRejectedError(REASON_SIGNATURE)

    prefix = bytes(data[:CONTENT_SCAN_BYTES])
    for marker in SUSPICIOUS_MARKERS:
        if marker.search(prefix):
            raise UploadRejectedError(REASON_ACTIVE_CONTENT)


class _PartCollector:
    """python-multipart callbacks that collect parts into memory."""

    def __init__(self, max_file_bytes: int):
        self.max_file_bytes = max_file_bytes
        self.file: Optional[UploadedFile] = None
        self.files_seen = 0

        self._header_field = b""
        self._header_value = b""
        self._headers: List[Tuple[bytes, bytes]] = []
        self._is_file = False
        self._field_bytes = 0

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_part_data": self.on_part_data,
        }

    def on_part_begin(self) -> None:
        self._headers = []
        self._is_file = False
        self._field_bytes = 0

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers.append((self._header_field.lower(), self._header_value))
        self._header_field = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        headers = dict(self._headers)
        _, options = parse_options_header(headers.get(b"content-disposition", b""))
        if b"filename" not in options:
            return

        self.files_seen += 1
        if self.files_seen > 1:
            raise UploadRejectedError(REASON_TOO_MANY)

        name = options.get(b"name", b"").decode("utf-8", errors="replace")
        filename = options[b"filename"].decode("utf-8", errors="replace")
        content_type = headers.get(b"content-type", b"").decode("latin-1").strip()

        self.file = UploadedFile(filename=filename, content_type=content_type)
        if name != UPLOAD_FIELD:
            raise UploadRejectedError(REASON_UNEXPECTED_FIELD)
        check_file_metadata(filename, content_type)
        self._is_file = True

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        chunk = data[start:end]
        if self._is_file:
            if self.file.size + len(chunk) > self.max_file_bytes:
                raise UploadRejectedError(REASON_SIZE)
            self.file.data.extend(chunk)
        else:
            self._field_bytes += len(chunk)
            if self._field_bytes > MAX_FIELD_BYTES:
                raise UploadRejectedError(REASON_FIELD_SIZE)


async def read_transcript_upload(request: Request) -> UploadedFile:
    """
    Stream the request body and return the validated PDF.

    Raises:
        UploadRejectedError: on any gate failure
    """
    collector = _PartCollector(settings.max_upload_bytes)
    audit = {
        "ip": client_ip(request),
        "user_agent": request.headers.get("user-agent", ""),
    }

    try:
        content_type, params = parse_options_header(request.headers.get("content-type", ""))
        boundary = params.get(b"boundary")
        if content_type != b"multipart/form-data" or not boundary:
            raise UploadRejectedError(REASON_NO_FILE)

        parser = python_multipart.MultipartParser(boundary, collector.callbacks())
        async for chunk in request.stream():
            parser.write(chunk)
        parser.finalize()

        if collector.file is None:
            raise UploadRejectedError(REASON_NO_FILE)

        check_pdf_content(collector.file.data)

    except UploadRejectedError as e:
        file = collector.file
        log_file_upload(
            success=False,
            file_name=file.filename if file else None,
            mime_type=file.content_type if file else None,
            file_size=file.size if file else None,
            reason=e.message,
            **audit,
        )
        if file:
            file.discard()
        raise

    file = collector.file
    log_file_upload(
        success=True,
        file_name=file.filename,
        mime_type=file.content_type,
        file_size=file.size,
        **audit,
    )
    return file
