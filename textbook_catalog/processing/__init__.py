"""
Post-crawl processing of the collected records.
"""

from .pipeline import DataProcessor, GRADE_ORDER, grade_rank

__all__ = ['DataProcessor', 'GRADE_ORDER', 'grade_rank']
