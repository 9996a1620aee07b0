"""django-assist: interactive front-end for managing Django projects.

Discovers ``manage.py`` subcommands, builds parameterized quick commands
from declarative specs, and runs them as tracked subprocess sessions.
"""

__version__ = "0.3.0"
