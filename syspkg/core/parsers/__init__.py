"""
Output parsers, one module per manager.

Every function is a pure ``text -> PackageRecord`` transform; the
adapters decide which parser fits which command.
"""
