"""
Termalime Services
"""
