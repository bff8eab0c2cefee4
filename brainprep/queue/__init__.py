"""
Brainprep Queue Module
"""

from .queue_manager import JobStatus, QueueJob, QueueManager

__all__ = ['JobStatus', 'QueueJob', 'QueueManager']
