from datetime import timedelta

import pytest

from app.errors import (
    AlreadyUsedError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.models.audit import AuditAction
from app.models.contracts import SignatureType, SignedContract
from app.services import contracts as contracts_service
from app.services import verification as verification_service
from app.services.audit import audit_events
from app.services.audit_helpers import RequestContext
from app.services.common import as_utc, utcnow
from tests.conftest import PDF_BYTES

CONTEXT = RequestContext(ip_address="198.51.100.7", user_agent="pytest")


def _actions(db_session, link_id=None):
    return [item["action"] for item in audit_events.list(db_session, link_id=link_id)]


def _last(db_session, action):
    return audit_events.list(db_session, action=action)[0]


def _complete(db_session, link_id, pdf_base64, **overrides):
    fields = {
        "link_id": link_id,
        "interpreter_name": "Jane Doe",
        "signature_type": "draw",
        "signature_data": "data:image/png;base64,iVBORw0KGgo=",
        "pdf_base64": pdf_base64,
        "context": CONTEXT,
    }
    fields.update(overrides)
    return verification_service.verification.complete(db_session, **fields)


def test_verify_success_leaves_link_pending(db_session, make_link):
    link = make_link()
    verified = verification_service.verification.verify(db_session, link.id, "123456", CONTEXT)
    assert verified.id == link.id
    db_session.refresh(link)
    assert link.used is False

    entry = _last(db_session, AuditAction.otp_verified_success)
    assert entry["details"] == {"email": "interpreter@example.com"}
    assert entry["ip_address"] == "198.51.100.7"


def test_verify_can_repeat_until_signed(db_session, make_link):
    link = make_link()
    verification_service.verification.verify(db_session, link.id, "123456")
    verification_service.verification.verify(db_session, link.id, "123456")
    assert _actions(db_session, link.id).count("OTP_VERIFIED_SUCCESS") == 2


def test_verify_trims_supplied_code_and_accepts_numbers(db_session, make_link):
    link = make_link()
    verification_service.verification.verify(db_session, link.id, "  123456\n")
    verification_service.verification.verify(db_session, link.id, 123456)


def test_verify_missing_params(db_session):
    with pytest.raises(ValidationError) as exc:
        verification_service.verification.verify(db_session, "", "123456")
    assert exc.value.reason == "missing_params"
    entry = _last(db_session, AuditAction.otp_verify_failed)
    assert entry["details"] == {"reason": "missing_params", "linkId": False, "otp": True}

    with pytest.raises(ValidationError):
        verification_service.verification.verify(db_session, "abc", "   ")


def test_verify_unknown_link(db_session):
    with pytest.raises(NotFoundError) as exc:
        verification_service.verification.verify(db_session, "0" * 32, "123456")
    assert exc.value.message == "Invalid or expired link"
    assert _last(db_session, AuditAction.otp_verify_failed)["details"]["reason"] == "link_not_found"


def test_verify_expired_link_is_reported_before_bad_code(db_session, expired_link):
    with pytest.raises(ExpiredError):
        verification_service.verification.verify(db_session, expired_link.id, "000000")
    entry = _last(db_session, AuditAction.otp_verify_failed)
    assert entry["details"]["reason"] == "link_expired"
    assert "expires_at" in entry["details"]


def test_verify_expires_exactly_at_expiry(db_session, make_link):
    link = make_link()
    with pytest.raises(ExpiredError):
        verification_service.verification.verify(
            db_session, link.id, "123456", now=as_utc(link.expires_at)
        )
    verification_service.verification.verify(
        db_session, link.id, "123456", now=as_utc(link.expires_at) - timedelta(seconds=1)
    )


def test_verify_used_link_is_reported_before_bad_code(db_session, make_link):
    link = make_link()
    link.used = True
    db_session.commit()
    with pytest.raises(AlreadyUsedError):
        verification_service.verification.verify(db_session, link.id, "000000")


def test_verify_link_with_contract_counts_as_used(db_session, make_link):
    link = make_link()
    db_session.add(
        SignedContract(
            link_id=link.id,
            interpreter_name="Jane Doe",
            signature_type=SignatureType.text,
            signature_data="Jane Doe",
            pdf_content="JVBERi0=",
            signed_at=utcnow(),
        )
    )
    db_session.commit()
    assert link.used is False
    with pytest.raises(AlreadyUsedError):
        verification_service.verification.verify(db_session, link.id, "123456")


def test_verify_wrong_code(db_session, make_link):
    link = make_link()
    with pytest.raises(InvalidCodeError):
        verification_service.verification.verify(db_session, link.id, "123457")
    with pytest.raises(InvalidCodeError):
        verification_service.verification.verify(db_session, link.id, "12345")
    entry = _last(db_session, AuditAction.otp_verify_failed)
    assert entry["details"] == {"reason": "invalid_otp"}
    assert entry["link_id"] == link.id


def test_otp_matches_is_exact():
    assert verification_service.otp_matches("123456", " 123456 ")
    assert not verification_service.otp_matches("123456", "1234567")
    assert not verification_service.otp_matches("123456", "")


def test_complete_stores_contract_and_consumes_link(db_session, make_link, pdf_base64):
    link = make_link()
    verification_service.verification.verify(db_session, link.id, "123456")

    contract = _complete(db_session, link.id, pdf_base64, interpreter_name="  Jane Doe ")

    assert contract.link_id == link.id
    assert contract.interpreter_name == "Jane Doe"
    assert contract.signature_type == SignatureType.draw
    db_session.refresh(link)
    assert link.used is True

    saved = _last(db_session, AuditAction.contract_signed_saved)
    assert saved["details"]["signatureType"] == "draw"
    assert saved["details"]["pdfSize"] == len(pdf_base64)
    marked = _last(db_session, AuditAction.link_marked_used)
    assert marked["details"] == {"source": "contract_signed"}

    with pytest.raises(AlreadyUsedError):
        verification_service.verification.verify(db_session, link.id, "123456")


def test_complete_twice_conflicts(db_session, make_link, pdf_base64):
    link = make_link()
    _complete(db_session, link.id, pdf_base64)
    with pytest.raises(ConflictError):
        _complete(db_session, link.id, pdf_base64, interpreter_name="Someone Else")
    assert db_session.query(SignedContract).count() == 1
    failed = _last(db_session, AuditAction.contract_save_failed)
    assert failed["details"] == {"reason": "already_signed"}


def test_complete_race_maps_unique_violation_to_conflict(
    db_session, make_link, pdf_base64, monkeypatch
):
    link = make_link()
    _complete(db_session, link.id, pdf_base64)
    monkeypatch.setattr(
        verification_service.signed_contracts, "is_signed", lambda db, link_id: False
    )
    with pytest.raises(ConflictError):
        _complete(db_session, link.id, pdf_base64)
    assert db_session.query(SignedContract).count() == 1


def test_complete_reports_missing_fields(db_session, pdf_base64):
    with pytest.raises(ValidationError) as exc:
        _complete(db_session, "", pdf_base64, signature_data="  ")
    assert exc.value.message == "Missing required fields"
    failed = _last(db_session, AuditAction.contract_save_failed)
    assert failed["details"] == {
        "reason": "missing_required_fields",
        "missing": ["linkId", "signatureData"],
    }


def test_complete_rejects_unknown_signature_type(db_session, make_link, pdf_base64):
    link = make_link()
    with pytest.raises(ValidationError) as exc:
        _complete(db_session, link.id, pdf_base64, signature_type="stamp")
    assert exc.value.reason == "invalid_signature_type"
    db_session.refresh(link)
    assert link.used is False


def test_complete_unknown_link(db_session, pdf_base64):
    with pytest.raises(NotFoundError):
        _complete(db_session, "f" * 32, pdf_base64)
    assert db_session.query(SignedContract).count() == 0


def test_complete_does_not_recheck_expiry(db_session, expired_link, pdf_base64):
    contract = _complete(db_session, expired_link.id, pdf_base64)
    assert contract.link_id == expired_link.id


def test_complete_wraps_store_failures(db_session, make_link, pdf_base64, monkeypatch):
    link = make_link()

    def _fail(*args, **kwargs):
        raise StorageError("Failed to save contract", reason="disk full")

    monkeypatch.setattr(verification_service.signed_contracts, "create", _fail)
    with pytest.raises(StorageError) as exc:
        _complete(db_session, link.id, pdf_base64)
    assert exc.value.message == "Failed to save contract"
    assert _last(db_session, AuditAction.contract_save_error)["details"] == {"error": "disk full"}


def test_get_contract(db_session, make_link, pdf_base64):
    link = make_link()
    _complete(db_session, link.id, pdf_base64)
    contract = verification_service.verification.get_contract(db_session, link.id)
    assert contract.interpreter_name == "Jane Doe"

    with pytest.raises(ValidationError):
        verification_service.verification.get_contract(db_session, None)
    with pytest.raises(NotFoundError):
        verification_service.verification.get_contract(db_session, "0" * 32)


def test_download_pdf_returns_bytes_and_filename(db_session, make_link, pdf_base64):
    link = make_link()
    _complete(db_session, link.id, pdf_base64)

    pdf_bytes, filename = verification_service.verification.download_pdf(
        db_session, link.id, CONTEXT
    )
    assert pdf_bytes == PDF_BYTES
    assert filename == f"contract-Jane-Doe-{utcnow().date().isoformat()}.pdf"
    downloaded = _last(db_session, AuditAction.pdf_downloaded)
    assert downloaded["details"] == {"interpreterName": "Jane Doe", "size": len(PDF_BYTES)}


def test_download_pdf_accepts_data_url(db_session, make_link, pdf_base64):
    link = make_link()
    _complete(db_session, link.id, f"data:application/pdf;base64,{pdf_base64}")
    pdf_bytes, _ = verification_service.verification.download_pdf(db_session, link.id)
    assert pdf_bytes == PDF_BYTES


def test_download_pdf_missing_or_unreadable(db_session, make_link):
    with pytest.raises(NotFoundError):
        verification_service.verification.download_pdf(db_session, "0" * 32)
    assert _last(db_session, AuditAction.pdf_download_failed)["details"] == {
        "reason": "contract_not_found"
    }

    link = make_link()
    _complete(db_session, link.id, "!!!!")
    with pytest.raises(NotFoundError):
        verification_service.verification.download_pdf(db_session, link.id)
    assert _last(db_session, AuditAction.pdf_download_failed)["details"] == {
        "reason": "pdf_unreadable"
    }


def test_pdf_filename_sanitizes_name(db_session, make_link, pdf_base64):
    link = make_link()
    contract = _complete(db_session, link.id, pdf_base64, interpreter_name="José  O'Brien/..")
    filename = contracts_service.pdf_filename(contract)
    assert filename.startswith("contract-Jos-OBrien..-")
    assert "/" not in filename


def test_mark_link_used(db_session, make_link):
    link = make_link()
    verification_service.verification.mark_link_used(db_session, link.id, CONTEXT)
    db_session.refresh(link)
    assert link.used is True
    entry = _last(db_session, AuditAction.link_marked_used)
    assert entry["details"]["source"] == "api"
    assert "markedAt" in entry["details"]

    with pytest.raises(NotFoundError):
        verification_service.verification.mark_link_used(db_session, "0" * 32)
    with pytest.raises(ValidationError):
        verification_service.verification.mark_link_used(db_session, " ")
