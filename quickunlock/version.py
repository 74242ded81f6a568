"""QuickUnlock Meta information.
   QuickUnlock keeps a PIN-encrypted copy of a database unlock key in memory
   for a short time, so the database can be reopened without the full key.
"""
__title__ = 'quickunlock'
__description__ = (
   'Short-lived, PIN-encrypted in-memory cache of database unlock keys '
   'for quick re-authentication.'
)
__version__ = '0.1.0'
__license__ = 'Apache-2.0'
