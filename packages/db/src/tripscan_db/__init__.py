"""TripScan DB - read-side tables for locations, preferences and history."""
