from clipsync.models.clipboard_item import ClipboardItem, ClipboardType
from clipsync.models.user import User

__all__ = ["ClipboardItem", "ClipboardType", "User"]
