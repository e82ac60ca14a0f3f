from .ai_response import AIResponse, CallResult, KeyTestResult, ProviderAvailability
from .archive_model import ArchiveEntry, ArchiveRecord, PatchFile, PatchMove, ZipPatch

__all__ = [
    "AIResponse",
    "CallResult",
    "KeyTestResult",
    "ProviderAvailability",
    "ArchiveEntry",
    "ArchiveRecord",
    "PatchFile",
    "PatchMove",
    "ZipPatch",
]
