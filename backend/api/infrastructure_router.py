"""
Infrastructure Router
Error statistics and configuration for monitoring
"""

from fastapi import APIRouter, Depends
from datetime import datetime

router = APIRouter(prefix="/api/infrastructure", tags=["Infrastructure"])


# Lazy imports to avoid circular dependencies
def get_error_tracker():
    from infrastructure import error_tracker
    return error_tracker


def get_config():
    from infrastructure import config
    return config


# ============================================
# ERRORS
# ============================================

@router.get("/errors/stats")
async def get_error_stats(tracker=Depends(get_error_tracker)):
    """Error counts by type and the most recent errors"""
    return tracker.get_stats()


@router.delete("/errors")
async def clear_errors(tracker=Depends(get_error_tracker)):
    """Reset error history"""
    tracker.clear()
    return {"cleared": True, "timestamp": datetime.now().isoformat()}


# ============================================
# CONFIGURATION
# ============================================

@router.get("/config")
async def get_configuration(cfg=Depends(get_config)):
    """
    Current configuration (secrets hidden).
    RPC overrides are listed by chain id only.
    """
    return {
        **cfg.to_dict(),
        "timestamp": datetime.now().isoformat(),
    }
