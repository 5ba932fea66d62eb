"""Locker Migration Tool

Moves locked-token positions from a legacy locker registry into a freshly
deployed one, keeping each position's amount, remaining lock time and owner,
and re-points the staking contract at the new registry.
"""

__version__ = '0.1.0'
__author__ = 'Locker Migration Team'
__email__ = 'team@example.com'
