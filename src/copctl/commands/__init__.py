"""Built-in CLI sub-commands for copctl.

* :mod:`~copctl.commands.auth` -- log in and list the supported auth methods.
* :mod:`~copctl.commands.objects` -- read and write knowledge-store objects
  and types.

Each module exports :class:`typer.Typer` sub-applications that
:mod:`copctl.app` mounts on the root command.
"""
