"""Point projection, subdivision and geodesic cuts."""
