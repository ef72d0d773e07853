# coopbus/dividends/__init__.py

"""
Dividends Module

Turns a period's surplus into member dividends:
- Calculation per cooperative model (passenger, worker, hybrid)
- Saving, paying out and cancelling distributions
- Per-tenant schedule settings and the automated scheduler
- Celery task driving scheduled runs
"""
