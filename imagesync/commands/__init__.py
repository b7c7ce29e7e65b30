"""Click commands for imagesync."""
