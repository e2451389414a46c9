"""Timeline actions and periodic posts."""
