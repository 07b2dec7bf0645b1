"""Command line helpers for the submap mapper."""
