"""
Pawbook - 宠物日托/寄宿/美容预订引擎
"""

__version__ = "1.0.0"
