"""Email order intake: parse order emails into reviewable pending orders."""

__version__ = "0.1.0"
