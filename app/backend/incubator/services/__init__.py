"""Application services and workspace engines."""
