"""
Module ORM Registry (``gls_modules._orm_registry``).

Responsibility
--------------
Ensure every kernel and module ORM model is imported so that
``Base.metadata`` holds all table definitions before
``gls_kernel.db.engine.create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by the kernel engine's
``create_tables()`` / ``drop_tables()`` only.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``gls_modules.*.orm`` module.

    Kernel tables first; module tables reference them by foreign key.
    Idempotent.
    """
    import gls_kernel.models.audit_event  # noqa: F401
    import gls_kernel.services.sequence_service  # noqa: F401
    # fmt: off
    import gls_modules.payables.orm  # noqa: F401
    import gls_modules.receivables.orm  # noqa: F401
    import gls_modules.proposals.orm  # noqa: F401
    import gls_modules.payments.orm  # noqa: F401
    # fmt: on
