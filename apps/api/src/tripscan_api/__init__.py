"""TripScan API - unified search endpoint over the provider registry."""
