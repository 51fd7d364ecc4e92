"""Domain services. Each takes a Store and runs its writes in one transaction."""
