"""TripScan core: shared schemas, errors and identifiers."""
