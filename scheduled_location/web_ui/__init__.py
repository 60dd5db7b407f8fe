"""scheduled_location.web_ui — Flask control and status API."""
