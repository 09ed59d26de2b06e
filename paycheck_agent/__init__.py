"""
Retirement Paycheck voice intake agent.

Collects retirement-planning facts through a voice conversation and
forwards them to the Income Conductor planning site and a PDF form.
"""

__version__ = "0.3.0"
