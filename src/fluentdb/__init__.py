"""
fluentdb - fluent, vendor-agnostic database access.

Configure a command with a ``Builder``, ``build()`` it into an
``Execution`` and run it; PostgreSQL, Oracle and SQLite look the same from
the outside::

    from fluentdb import Builder, CommandKind, Parameter

    with (
        Builder.sqlite("app.db")
        .with_command("SELECT id, name FROM users WHERE id = :id", CommandKind.TEXT)
        .with_parameters(Parameter("id", 1))
        .build()
    ) as execution:
        user = execution.read_first(None, lambda row: (row["id"], row["name"]))
"""

__version__ = "0.1.0"

from fluentdb.core import *  # noqa: F401,F403
from fluentdb.core import __all__ as _core_all

__all__ = ["__version__", *_core_all]
