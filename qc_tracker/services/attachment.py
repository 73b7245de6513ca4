import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from qc_tracker.core.config import Settings
from qc_tracker.core.db import transaction
from qc_tracker.core.exceptions import NotFoundError, ValidationError
from qc_tracker.models.qc import Attachment, QCSession

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


@dataclass
class IncomingFile:
    filename: str
    content_type: str
    content: bytes


class AttachmentService:
    """Photos attached to a QC session, stored on disk under ``UPLOAD_DIR``.

    Files are laid out as ``<UPLOAD_DIR>/<YYYY-MM-DD>/<uuid><ext>``; the
    attachment row keeps the path relative to the upload directory.
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.upload_dir = settings.upload_dir
        self.max_files = settings.max_upload_files
        self.max_size = settings.max_upload_size_bytes
        self.max_size_mb = settings.max_upload_size_mb

    def absolute_path(self, relative_path: str) -> str:
        return os.path.join(self.upload_dir, relative_path)

    def validate_files(self, files: List[IncomingFile]) -> None:
        if not files:
            raise ValidationError("No files were uploaded")
        if len(files) > self.max_files:
            raise ValidationError(f"Too many files (max {self.max_files})")

        for incoming in files:
            if incoming.content_type not in ALLOWED_CONTENT_TYPES:
                raise ValidationError("Only image files are allowed (JPEG, PNG, GIF, WEBP)")
            if len(incoming.content) > self.max_size:
                raise ValidationError(f"File too large (max {self.max_size_mb}MB)")

    def _write_file(self, incoming: IncomingFile) -> str:
        date_folder = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        os.makedirs(os.path.join(self.upload_dir, date_folder), exist_ok=True)

        ext = os.path.splitext(incoming.filename or "")[1].lower()
        relative_path = os.path.join(date_folder, f"{uuid.uuid4()}{ext}")
        with open(self.absolute_path(relative_path), "wb") as fh:
            fh.write(incoming.content)
        return relative_path

    def save_attachments(self, session_id: int, files: List[IncomingFile],
                         current_user: Dict[str, Any], description: Optional[str] = None) -> List[Attachment]:
        if not self.db.query(QCSession).filter(QCSession.id == session_id).first():
            raise NotFoundError("QC record not found")

        self.validate_files(files)

        written: List[str] = []
        attachments: List[Attachment] = []
        try:
            with transaction(self.db):
                for incoming in files:
                    relative_path = self._write_file(incoming)
                    written.append(relative_path)

                    attachment = Attachment(
                        qc_session_id=session_id,
                        file_name=incoming.filename,
                        file_path=relative_path,
                        file_type=incoming.content_type,
                        file_size=len(incoming.content),
                        description=description,
                        uploaded_by=current_user.get("user_id"),
                    )
                    self.db.add(attachment)
                    attachments.append(attachment)
        except Exception:
            self.discard_files(written)
            raise

        for attachment in attachments:
            self.db.refresh(attachment)

        logger.info(f"Stored {len(attachments)} attachment(s) for QC session {session_id}")
        return attachments

    def delete_attachment(self, attachment_id: int) -> Dict[str, Any]:
        with transaction(self.db):
            attachment = self.db.query(Attachment).filter(Attachment.id == attachment_id).first()
            if not attachment:
                raise NotFoundError("Attachment not found")
            removed = attachment.model_dump()
            self.db.delete(attachment)

        self.discard_files([removed["file_path"]])
        return removed

    def discard_files(self, relative_paths: Iterable[str]) -> None:
        for relative_path in relative_paths:
            path = self.absolute_path(relative_path)
            try:
                os.remove(path)
            except FileNotFoundError:
                logger.warning(f"Attachment file already gone: {path}")
            except OSError as e:
                logger.error(f"Failed to remove attachment file {path}: {e}")
