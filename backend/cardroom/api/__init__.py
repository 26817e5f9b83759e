"""HTTP surface for the cardroom."""
