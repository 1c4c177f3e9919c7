"""Alert dispatch and notification channels."""
