"""manage.py command discovery and declarative quick commands.

Public API:
    list_commands / list_command_args: catalog discovery (management.catalog)
    CommandSpec / ArgumentSpec: quick command specs (management.spec)
    QuickCommandTable: built-in quick commands (management.quick_commands)
"""
