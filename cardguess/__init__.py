"""
Card Guesser - Detection-driven card guessing game

A Mastermind-style game: find the hidden playing card within a few
attempts, guided by rank (higher/lower), color and suit feedback.
Guesses come from an object detector watching a live camera feed.

The package provides:
- Card model and feedback engine
- Detection reconciliation (sticky candidate, in-flight guarding)
- Game state machine and controller
- REST/WebSocket API and CLI
"""

__version__ = "0.1.0"
