import os

import pytest

from qc_tracker.core.config import Settings
from qc_tracker.core.exceptions import NotFoundError, ValidationError
from qc_tracker.models.qc import Attachment
from qc_tracker.services.attachment import AttachmentService, IncomingFile
from qc_tracker.services.qc import QCService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def png(name="photo.png", content=PNG):
    return IncomingFile(filename=name, content_type="image/png", content=content)


@pytest.fixture
def qc_session_id(db, staff_user):
    return QCService(db).start_session("SN-ATT", staff_user)["qc_session"].id


def test_save_attachments_writes_files_and_rows(db, settings, staff_user, qc_session_id):
    service = AttachmentService(db, settings)

    attachments = service.save_attachments(qc_session_id, [png(), png("back.PNG")], staff_user, description="Depan")

    assert len(attachments) == 2
    for attachment in attachments:
        assert attachment.qc_session_id == qc_session_id
        assert attachment.file_type == "image/png"
        assert attachment.file_size == len(PNG)
        assert attachment.uploaded_by == staff_user["user_id"]
        assert attachment.description == "Depan"
        assert not os.path.isabs(attachment.file_path)
        with open(service.absolute_path(attachment.file_path), "rb") as fh:
            assert fh.read() == PNG

    assert attachments[1].file_path.endswith(".png")
    assert attachments[0].file_name == "photo.png"


def test_rejects_non_images(db, settings, staff_user, qc_session_id):
    pdf = IncomingFile(filename="doc.pdf", content_type="application/pdf", content=b"%PDF-1.4")

    with pytest.raises(ValidationError):
        AttachmentService(db, settings).save_attachments(qc_session_id, [png(), pdf], staff_user)

    assert db.query(Attachment).count() == 0
    assert not os.path.exists(settings.upload_dir) or not any(files for _, _, files in os.walk(settings.upload_dir))


def test_rejects_too_many_files(db, settings, staff_user, qc_session_id):
    files = [png(f"{i}.png") for i in range(settings.max_upload_files + 1)]

    with pytest.raises(ValidationError):
        AttachmentService(db, settings).save_attachments(qc_session_id, files, staff_user)


def test_rejects_empty_upload(db, settings, staff_user, qc_session_id):
    with pytest.raises(ValidationError):
        AttachmentService(db, settings).save_attachments(qc_session_id, [], staff_user)


def test_rejects_oversized_files(db, tmp_path, staff_user, qc_session_id):
    small = Settings({
        "SECRET_KEY": "x",
        "DATABASE_URL": "sqlite://",
        "UPLOAD_DIR": str(tmp_path / "small"),
        "MAX_UPLOAD_SIZE_MB": "1",
    })

    with pytest.raises(ValidationError):
        AttachmentService(db, small).save_attachments(
            qc_session_id, [png(content=b"\x00" * (1024 * 1024 + 1))], staff_user
        )


def test_unknown_session_is_not_found(db, settings, staff_user):
    with pytest.raises(NotFoundError):
        AttachmentService(db, settings).save_attachments(999, [png()], staff_user)


def test_delete_attachment_removes_row_and_file(db, settings, staff_user, qc_session_id):
    service = AttachmentService(db, settings)
    attachment = service.save_attachments(qc_session_id, [png()], staff_user)[0]
    path = service.absolute_path(attachment.file_path)

    removed = service.delete_attachment(attachment.id)

    assert removed["id"] == attachment.id
    assert not os.path.exists(path)
    assert db.query(Attachment).count() == 0

    with pytest.raises(NotFoundError):
        service.delete_attachment(attachment.id)


def test_discard_files_tolerates_missing_files(db, settings):
    AttachmentService(db, settings).discard_files(["2020-01-01/missing.png"])
