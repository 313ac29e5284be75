"""Facade module."""

from .facade import FacadeEvent, IMessagingFacade, MessagingFacade, SessionFactory

__all__ = ["FacadeEvent", "IMessagingFacade", "MessagingFacade", "SessionFactory"]
