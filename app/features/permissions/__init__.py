"""
Permission delegation feature module.

Managers delegate per-partner permissions to manager staff and assign the
system-wide voucher manager category to at most one of them.
"""
