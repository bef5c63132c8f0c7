"""releaseforge command-line interface."""
