"""Remote vault client and the in-memory vault cache."""
