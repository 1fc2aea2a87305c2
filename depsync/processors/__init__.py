"""Pure update processing: version classification and update aggregation."""
