"""Feed ranking and personalization engine for a video-sharing platform."""

__version__ = "0.1.0"
