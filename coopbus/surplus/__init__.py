# coopbus/surplus/__init__.py

"""
Surplus Module

Per-route surplus pools and their append-only transaction ledger. Every
balance change goes through a row-locked unit of work on the pool.
"""
