"""
Background scheduling for the daily award.
"""
