from models.draft import DraftAttachment, DraftSession

__all__ = [
    "DraftAttachment",
    "DraftSession",
]
