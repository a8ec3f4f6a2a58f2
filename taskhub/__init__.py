"""taskhub - task mutation fan-out core for a local to-do app."""
