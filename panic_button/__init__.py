"""Campus panic-button client service."""
