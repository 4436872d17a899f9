"""
QuizPulse Assessment Scoring and Live Monitoring

This package scores quiz submissions and keeps instructors informed while
students take an assessment.

The pipeline features:
1. Deterministic scoring of submitted answers against a question bank
2. Append-only attempts, so every submission is kept
3. Summary statistics over the attempts of an assessment or a course
4. Fire-and-forget lifecycle events (start, answer, submit)
5. Live per-assessment monitors fed by those events
"""

__version__ = "0.1.0"
