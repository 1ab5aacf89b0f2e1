"""
Error Handling for the Haiku Execution Backend
Structured exceptions for the execution pipeline and the HTTP surface

Features:
- Execution error taxonomy (one class per terminal failure kind)
- Structured JSON error responses
- Error tracking and aggregation
"""

import logging
import traceback
from datetime import datetime
from typing import Dict, List, Optional
from enum import Enum

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger("ErrorHandler")


# ============================================
# ERROR CODES
# ============================================

class ErrorCode(str, Enum):
    # Caller errors
    VALIDATION_ERROR = "ValidationError"
    NO_SIGNING_METHOD = "NoSigningMethod"
    UNSUPPORTED_CHAIN = "UnsupportedChain"
    BROADCAST_REQUIRES_KEY = "BroadcastRequiresKey"

    # Execution errors
    APPROVAL_FAILURE = "ApprovalFailure"
    SIGNING_FAILURE = "SigningFailure"
    UPSTREAM_FAILURE = "UpstreamFailure"
    BROADCAST_FAILURE = "BroadcastFailure"

    INTERNAL_ERROR = "InternalError"


# ============================================
# CUSTOM EXCEPTIONS
# ============================================

class HaikuError(Exception):
    """Base exception for the execution backend"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Dict = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now()

    def describe(self) -> str:
        """One-line description, prefixed with the error code"""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> Dict:
        return {
            "success": False,
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp.isoformat()
            }
        }


class ValidationError(HaikuError):
    """Input validation error"""
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, 400, details)


class NoSigningMethodError(HaikuError):
    """Broadcast requested without a local key or external signatures"""
    def __init__(self):
        super().__init__(
            "No signing method provided. Either:\n"
            "1. Set WALLET_PRIVATE_KEY env var for self-contained signing\n"
            "2. Pass permit2Signature/userSignature from an external wallet "
            "(use prepare-signatures first)\n"
            "3. Set broadcast=false to just get the unsigned transaction",
            ErrorCode.NO_SIGNING_METHOD,
            400,
        )


class UnsupportedChainError(HaikuError):
    """Chain id has no registry entry"""
    def __init__(self, chain_id):
        super().__init__(
            f"Unsupported chain ID: {chain_id}",
            ErrorCode.UNSUPPORTED_CHAIN,
            400,
            {"chain_id": chain_id}
        )


class BroadcastRequiresKeyError(HaikuError):
    """External signatures supplied, broadcast requested, no key to submit the tx"""
    def __init__(self):
        super().__init__(
            "To broadcast with external signatures, WALLET_PRIVATE_KEY is still required "
            "to sign the transaction itself. The permit2Signature/userSignature authorize the "
            "Permit2 and bridge payloads only, not the transaction submission. Either:\n"
            "1. Set WALLET_PRIVATE_KEY env var for broadcasting\n"
            "2. Set broadcast=false and broadcast the returned tx with your own wallet",
            ErrorCode.BROADCAST_REQUIRES_KEY,
            400,
        )


class ApprovalFailureError(HaikuError):
    """An ERC-20 approval could not be submitted or confirmed"""
    def __init__(
        self,
        message: str,
        step_index: int,
        confirmed_hashes: Optional[List[str]] = None,
        tx_hash: str = None
    ):
        self.step_index = step_index
        self.confirmed_hashes = list(confirmed_hashes or [])
        details = {
            "step_index": step_index,
            "confirmed_hashes": self.confirmed_hashes,
        }
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(
            f"Approval {step_index + 1} failed: {message}",
            ErrorCode.APPROVAL_FAILURE,
            500,
            details
        )


class SigningFailureError(HaikuError):
    """Typed-data or transaction signing raised"""
    def __init__(self, message: str, payload_name: str = None):
        details = {}
        if payload_name:
            details["payload"] = payload_name
        super().__init__(message, ErrorCode.SIGNING_FAILURE, 500, details)


class UpstreamFailureError(HaikuError):
    """The remote quoting service returned a non-success response"""
    def __init__(self, api_name: str, status_code: int = None, message: str = None):
        details = {"api": api_name}
        if status_code:
            details["api_status_code"] = status_code
        super().__init__(
            message or f"External API '{api_name}' failed",
            ErrorCode.UPSTREAM_FAILURE,
            502,
            details
        )


class BroadcastFailureError(HaikuError):
    """Transaction submission failed"""
    def __init__(self, chain_id: int, message: str, tx_hash: str = None):
        details = {"chain_id": chain_id}
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(message, ErrorCode.BROADCAST_FAILURE, 500, details)


# ============================================
# ERROR TRACKING
# ============================================

class ErrorTracker:
    """Tracks and aggregates errors for monitoring"""

    def __init__(self, max_errors: int = 1000):
        self.errors: list = []
        self.max_errors = max_errors
        self.error_counts: Dict[str, int] = {}

    def track(self, error: Exception, request_path: str = None):
        """Track an error"""
        error_type = type(error).__name__

        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        error_info = {
            "type": error_type,
            "message": str(error),
            "path": request_path,
            "timestamp": datetime.now().isoformat(),
            "traceback": traceback.format_exc() if not isinstance(error, HaikuError) else None
        }

        if isinstance(error, HaikuError):
            error_info["code"] = error.code.value
            error_info["details"] = error.details

        self.errors.append(error_info)

        if len(self.errors) > self.max_errors:
            self.errors = self.errors[-self.max_errors:]

        if not isinstance(error, HaikuError) or error.status_code >= 500:
            logger.error(f"Error tracked: {error_type} - {str(error)[:200]}")

    def get_stats(self) -> Dict:
        """Get error statistics"""
        return {
            "total_errors": len(self.errors),
            "error_counts": self.error_counts,
            "recent_errors": self.errors[-10:],
            "timestamp": datetime.now().isoformat()
        }

    def clear(self):
        """Clear error history"""
        self.errors.clear()
        self.error_counts.clear()


# Global error tracker
error_tracker = ErrorTracker()


# ============================================
# FASTAPI EXCEPTION HANDLERS
# ============================================

async def haiku_exception_handler(request: Request, exc: HaikuError) -> JSONResponse:
    """Handle HaikuError exceptions"""
    error_tracker.track(exc, str(request.url.path))

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPExceptions"""
    error_tracker.track(exc, str(request.url.path))

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": ErrorCode.VALIDATION_ERROR.value if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR.value,
                "message": exc.detail,
                "timestamp": datetime.now().isoformat()
            }
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    error_tracker.track(exc, str(request.url.path))

    logger.error(f"Unhandled exception: {traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "An unexpected error occurred",
                "timestamp": datetime.now().isoformat()
            }
        }
    )


def register_exception_handlers(app):
    """Register all exception handlers with FastAPI app"""
    app.add_exception_handler(HaikuError, haiku_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")

