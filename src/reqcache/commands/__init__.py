"""Built-in CLI sub-commands for reqcache.

* :mod:`~reqcache.commands.fetch` -- ``get``, ``preload`` and ``request``.
* :mod:`~reqcache.commands.cache` -- inspect and invalidate the persisted snapshot.
* :mod:`~reqcache.commands.config` -- view and modify global settings.
* :mod:`~reqcache.commands.profile` -- manage API profiles.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands export a plain callback registered on the root app.
"""
