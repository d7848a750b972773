"""Activity module - Agency audit trail."""
