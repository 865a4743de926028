"""Username reservation and pending DJ profile registry for Channel."""
