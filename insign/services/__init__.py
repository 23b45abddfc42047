"""Business logic services: email, notifications, storage, PDF sealing, signing workflow, webhooks and MFA."""
