"""Domain rules: booking state machine and interval overlap."""
