"""Attachments module."""

from .transfer import AttachmentTransfer, IAttachmentTransfer

__all__ = ["AttachmentTransfer", "IAttachmentTransfer"]
