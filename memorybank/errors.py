"""Exception hierarchy for the memory-bank pipeline."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class MemoryBankError(Exception):
    """Base class for all pipeline errors."""

    error_code = "MEMORY_BANK_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error_code": self.error_code, "message": self.message, "details": self.details}


class ScanIOError(MemoryBankError):
    """A directory could not be read during the inventory walk."""

    error_code = "SCAN_IO_ERROR"

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read directory {path}: {reason}", {"path": path})
        self.path = path


class ProjectAnalysisError(MemoryBankError):
    error_code = "PROJECT_ANALYSIS_ERROR"


class InvalidProjectError(ProjectAnalysisError):
    """The project root does not exist or is not a directory."""

    error_code = "INVALID_PROJECT"

    def __init__(self, path: str):
        super().__init__(f"Project path is not a directory: {path}", {"path": path})
        self.path = path


class PathSecurityError(MemoryBankError):
    error_code = "PATH_SECURITY_ERROR"


class CacheError(MemoryBankError):
    """Phase 2 cannot continue; the caller has to restart from Phase 1."""

    error_code = "CACHE_ERROR"


class CacheNotFoundError(CacheError):
    error_code = "CACHE_NOT_FOUND"

    def __init__(self, analysis_id: str):
        super().__init__(
            f"Analysis {analysis_id} not found. It may have expired or never existed. "
            "Please restart from Phase 1 (mb analyze).",
            {"analysis_id": analysis_id},
        )
        self.analysis_id = analysis_id


class CacheExpiredError(CacheError):
    error_code = "CACHE_EXPIRED"

    def __init__(self, analysis_id: str):
        super().__init__(
            f"Analysis {analysis_id} has expired. Please restart from Phase 1 (mb analyze).",
            {"analysis_id": analysis_id},
        )
        self.analysis_id = analysis_id


CacheMiss = CacheNotFoundError
CacheExpired = CacheExpiredError


class ValidationError(MemoryBankError):
    """One or more response slots are missing or too short."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, missing: List[str], min_length: int):
        super().__init__(
            "Missing or insufficient responses for: " + ", ".join(missing),
            {"missing": list(missing), "min_length": min_length},
        )
        self.missing = list(missing)
        self.min_length = min_length


class ConfigurationError(MemoryBankError):
    error_code = "CONFIGURATION_ERROR"


class GenerationError(MemoryBankError):
    """Writing the accepted memory-bank content failed."""

    error_code = "GENERATION_ERROR"
