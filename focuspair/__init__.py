"""FocusPair: interval/focus timer engine with a phone-watch synced session store."""

__version__ = "0.1.0"
