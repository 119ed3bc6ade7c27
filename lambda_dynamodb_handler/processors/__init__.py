"""Processors for DynamoDB stream events."""

from .base import BaseProcessor
from .guest_notifier import GuestNotificationProcessor

__all__ = ["BaseProcessor", "GuestNotificationProcessor"]
