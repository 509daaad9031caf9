"""Domain operations (call history, recordings) on top of auth + http."""
