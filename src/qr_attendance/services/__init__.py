from .attendance_service import AttendanceRecorder, DuplicateAttendanceError
from .claims import ClaimHandler, ClaimSubmission, resolve_client_ip
from .qr_codes import IssuedQRCode, QRCodeIssuer, QRCodeRenderer, QRRenderer, build_scan_url
from .rate_limiter import RateLimitDecision, ScanRateLimiter, ScanRateLimitExceeded
from .sessions import SessionNotFoundError, SessionRepository
from .token_store import TokenStore
from .tokens import TokenSigner, TokenValidator, sign_payload

__all__ = [
	"AttendanceRecorder",
	"DuplicateAttendanceError",
	"ClaimHandler",
	"ClaimSubmission",
	"resolve_client_ip",
	"IssuedQRCode",
	"QRCodeIssuer",
	"QRCodeRenderer",
	"QRRenderer",
	"build_scan_url",
	"RateLimitDecision",
	"ScanRateLimiter",
	"ScanRateLimitExceeded",
	"SessionNotFoundError",
	"SessionRepository",
	"TokenStore",
	"TokenSigner",
	"TokenValidator",
	"sign_payload",
]
