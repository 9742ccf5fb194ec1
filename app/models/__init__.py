from app.models.audit import AuditAction, AuditLog, DetailsEncoding  # noqa: F401
from app.models.contracts import SignatureType, SignedContract  # noqa: F401
from app.models.secure_link import SecureLink  # noqa: F401
