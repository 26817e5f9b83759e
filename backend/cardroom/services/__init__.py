"""External services used by the cardroom."""
