"""
GreenQuest Backend - environmental points, social feed and student marketplace
"""

__version__ = '1.0.0'
