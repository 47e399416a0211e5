"""Clock authority and the observer time-sync protocol."""
