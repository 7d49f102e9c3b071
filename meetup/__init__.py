"""MeetUp group scheduling service."""
