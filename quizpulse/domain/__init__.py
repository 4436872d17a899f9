"""
Domain models and repository contracts for QuizPulse.
"""
