"""Appointment scheduling and proximity-notification engine for event-decoration storefronts."""
