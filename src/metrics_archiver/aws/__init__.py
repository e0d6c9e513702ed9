"""AWS adapters for the metrics source, blob store and inventory."""
