"""
Unit tests for the transcript upload gate.

The streaming reader is exercised through a bare FastAPI app so the gate is
tested without auth, CSRF or rate limiting in the way.
"""
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from app.middleware.security import register_exception_handlers
from app.services.upload_service import (
    check_file_metadata,
    check_pdf_content,
    read_transcript_upload,
)
from app.utils.errors import UploadRejectedError


@pytest.fixture
def upload_client():
    app = FastAPI()
    register_exception_handlers(app)

    @app.post("/upload")
    async def upload(request: Request):
        file = await read_transcript_upload(request)
        return {"filename": file.filename, "size": file.size}

    return TestClient(app)


class TestFileMetadata:

    def test_accepts_pdf(self):
        check_file_metadata("meeting-notes.pdf", "application/pdf")

    def test_accepts_uppercase_extension(self):
        check_file_metadata("NOTES.PDF", "application/pdf")

    @pytest.mark.parametrize("content_type", ["text/plain", "application/x-msdownload", ""])
    def test_rejects_mime(self, content_type):
        with pytest.raises(UploadRejectedError) as exc:
            check_file_metadata("notes.pdf", content_type)
        assert exc.value.message == "Only PDF files are allowed"

    @pytest.mark.parametrize("filename", ["notes.txt", "notes", "notes.pdf.exe"])
    def test_rejects_extension(self, filename):
        with pytest.raises(UploadRejectedError) as exc:
            check_file_metadata(filename, "application/pdf")
        assert exc.value.message == "Invalid file extension"

    @pytest.mark.parametrize("filename", [
        "../../etc/passwd.pdf",
        "..\\windows\\notes.pdf",
        "notes|rm.pdf",
        "what?.pdf",
        "CON.pdf",
        "lpt1.pdf",
        "invoice.exe.pdf",
        "script.js.pdf",
    ])
    def test_rejects_malicious_filenames(self, filename):
        with pytest.raises(UploadRejectedError) as exc:
            check_file_metadata(filename, "application/pdf")
        assert exc.value.message == "Invalid filename"
        assert exc.value.status_code == 400


class TestPdfContent:

    def test_accepts_plain_pdf(self, pdf_bytes):
        check_pdf_content(pdf_bytes)

    def test_rejects_missing_signature(self):
        with pytest.raises(UploadRejectedError) as exc:
            check_pdf_content(b"MZ\x90\x00 not a pdf")
        assert exc.value.message == "Invalid PDF file content"

    @pytest.mark.parametrize("marker", [b"/JavaScript", b"/JS", b"/Launch", b"/SubmitForm", b"/ImportData", b"/RichMedia", b"/XFA"])
    def test_rejects_active_content(self, pdf_bytes, marker):
        with pytest.raises(UploadRejectedError) as exc:
            check_pdf_content(pdf_bytes + b"<< /S " + marker + b" >>")
        assert exc.value.message == "PDF contains potentially harmful content"

    def test_markers_after_scan_window_ignored(self):
        data = b"%PDF-1.4\n" + b" " * 10000 + b"/JavaScript"
        check_pdf_content(data)


class TestStreamingUpload:

    def test_accepts_single_pdf(self, upload_client, pdf_bytes):
        response = upload_client.post(
            "/upload",
            files={"transcript": ("meeting.pdf", pdf_bytes, "application/pdf")},
        )
        assert response.status_code == 200
        assert response.json() == {"filename": "meeting.pdf", "size": len(pdf_bytes)}

    def test_no_file(self, upload_client):
        response = upload_client.post("/upload", data={"note": "hello"})
        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded"
        assert response.json()["code"] == "UPLOAD_REJECTED"

    def test_not_multipart(self, upload_client):
        response = upload_client.post("/upload", json={"transcript": "text"})
        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded"

    def test_two_files(self, upload_client, pdf_bytes):
        response = upload_client.post(
            "/upload",
            files=[
                ("transcript", ("a.pdf", pdf_bytes, "application/pdf")),
                ("transcript", ("b.pdf", pdf_bytes, "application/pdf")),
            ],
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Only one file allowed per request"

    def test_wrong_field(self, upload_client, pdf_bytes):
        response = upload_client.post(
            "/upload",
            files={"document": ("a.pdf", pdf_bytes, "application/pdf")},
        )
        assert response.status_code == 400

    def test_oversized_file(self, upload_client):
        data = b"%PDF-1.4\n" + b"0" * (11 * 1024 * 1024)
        response = upload_client.post(
            "/upload",
            files={"transcript": ("big.pdf", data, "application/pdf")},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "File size exceeds 10MB limit"

    def test_wrong_signature(self, upload_client):
        response = upload_client.post(
            "/upload",
            files={"transcript": ("fake.pdf", b"just some text", "application/pdf")},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid PDF file content"

    def test_text_mime(self, upload_client, pdf_bytes):
        response = upload_client.post(
            "/upload",
            files={"transcript": ("notes.pdf", pdf_bytes, "text/plain")},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Only PDF files are allowed"
