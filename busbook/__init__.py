"""BusBook: bus-ticket booking backend."""
