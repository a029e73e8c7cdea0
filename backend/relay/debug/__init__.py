"""Read-only HTTP views over relay state (users, rooms, messages, debug dump)."""
