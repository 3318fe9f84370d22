"""Application use cases."""

from .chat import Chat, ChatReply, FALLBACK_REPLY, annotate_with_notes
from .resources import ManagePatients, ManageResources
from .upload_file import UploadFile

__all__ = [
    "Chat",
    "ChatReply",
    "FALLBACK_REPLY",
    "annotate_with_notes",
    "ManagePatients",
    "ManageResources",
    "UploadFile",
]
