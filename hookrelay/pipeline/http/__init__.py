"""HTTP surface for the webhook execution pipeline."""
