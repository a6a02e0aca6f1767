"""Table assignment, availability and waitlist core for restaurant bookings."""

__version__ = "1.0.0"
