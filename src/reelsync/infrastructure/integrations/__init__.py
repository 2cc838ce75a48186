"""External integration implementations."""

from reelsync.infrastructure.integrations.webhook_executor import WebhookSyncExecutor

__all__ = ["WebhookSyncExecutor"]
