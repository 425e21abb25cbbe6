"""JSON schemas bundled with dem2terrain."""
