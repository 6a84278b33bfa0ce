"""Background location tracking: preferences, boot restore, service, alerts"""
