"""Database models for the reply pipeline"""
from .report import ActivityEvent, Reply, Report

__all__ = ["ActivityEvent", "Reply", "Report"]
