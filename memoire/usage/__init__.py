"""Token consumption tracking for generation calls."""
