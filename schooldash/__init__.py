"""Terminal dashboard for a school-management REST API."""
