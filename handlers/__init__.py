"""
handlers/ - Presentation Layer
================================
Telegram bot handlers. Each handler turns a Telegram update into an
InboundMessage, hands it to the per-chat dispatcher, and returns.
No business logic lives here.
"""
