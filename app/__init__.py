"""GST billing API."""
