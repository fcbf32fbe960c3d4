"""Remote backends and the capability protocols they implement."""
