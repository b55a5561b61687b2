"""Built-in CLI sub-commands for apibase.

* :mod:`~apibase.commands.call` -- send one request through the pipeline.
* :mod:`~apibase.commands.config` -- view and modify the user configuration.

``call`` is a plain callback registered directly on the root app; ``config``
is a :class:`typer.Typer` sub-application.
"""
