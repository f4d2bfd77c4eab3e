"""Multipart upload to ``SignedFile``."""

from __future__ import annotations

from fastapi import UploadFile

from custody_kernel.domain.documents import SignedFile


def read_signed_file(upload: UploadFile | None) -> SignedFile | None:
    """None when no file part was sent; the services reject empty content."""
    if upload is None:
        return None
    return SignedFile(
        file_name=upload.filename or "signed.pdf",
        mime_type=upload.content_type or "application/octet-stream",
        content=upload.file.read(),
    )
