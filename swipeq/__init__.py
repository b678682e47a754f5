"""SwipeQ - meal-swipe usage tracking from vendor order emails."""

__version__ = "0.1.0"
