"""Connection, room and message state plus event routing for the relay."""
