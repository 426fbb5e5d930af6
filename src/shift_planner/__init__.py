"""Shift planning engine: assigns staff to recurring shifts and reports unmet demand."""
